"""
Credential Generator Tests.
"""

import pytest
from custody.app.domain.custody import credentials
from custody.app.domain.custody.credentials import (
    TRACKING_ALPHABET,
    generate_tracking_code,
    generate_verification_code,
    generate_handoff_codes,
)


def test_tracking_code_format():
    code = generate_tracking_code()
    assert code.startswith("MHB-")
    suffix = code[len("MHB-"):]
    assert len(suffix) == 6
    assert all(c in TRACKING_ALPHABET for c in suffix)


def test_tracking_code_custom_prefix_and_length():
    code = generate_tracking_code(prefix="PK", length=8)
    assert code.startswith("PK")
    assert len(code) == 10


def test_verification_code_has_exact_length_and_no_leading_zero():
    for _ in range(200):
        code = generate_verification_code()
        assert len(code) == 4
        assert code.isdigit()
        assert code[0] != "0"


def test_handoff_codes_differ():
    for _ in range(100):
        warehouse_code, delivery_code = generate_handoff_codes()
        assert warehouse_code != delivery_code


def test_handoff_codes_redraw_on_equal(mocker):
    mocker.patch.object(
        credentials, "generate_verification_code", side_effect=["1234", "1234", "1234", "5678"]
    )
    assert generate_handoff_codes() == ("1234", "5678")

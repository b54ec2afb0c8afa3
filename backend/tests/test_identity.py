import pytest

from tilemarket.errors import InvalidIdentity, OffGridCoordinate
from tilemarket.services.identity import normalize, parse_content_ref, to_coordinates

CID_V0 = "QmYwAPJzv5CZsnA625s3Xf2nemtYgPpHdWEz79ojWnPbdG"


@pytest.mark.parametrize("raw, expected", [
    (0, 0),
    (45, 45),
    ("45", 45),
    (" 45 ", 45),
    ("5-2", 45),
    ("1-1", 1),
    ("40-1", 40),
    ("1-2", 41),
])
def test_normalize_accepts_known_encodings(raw, expected):
    assert normalize(raw) == expected


@pytest.mark.parametrize("raw", [
    "", "abc", "5-", "-2", "0-1", "41-1", "5-0", "1.5", "5-2-1", -1, True, None, 4.0,
])
def test_normalize_rejects_everything_else(raw):
    with pytest.raises(InvalidIdentity):
        normalize(raw)


def test_normalize_honours_row_width():
    assert normalize("5-2", row_width=10) == 15
    with pytest.raises(InvalidIdentity):
        normalize("11-1", row_width=10)


def test_to_coordinates_inverts_grid_encoding():
    for identity in range(1, 200):
        assert normalize(to_coordinates(identity)) == identity
    assert to_coordinates(45) == "5-2"
    assert to_coordinates(40) == "40-1"


def test_to_coordinates_rejects_zero():
    with pytest.raises(InvalidIdentity):
        to_coordinates(0)


@pytest.mark.parametrize("ref, expected", [
    (f"ipfs://{CID_V0}", CID_V0),
    (f"ipfs://ipfs/{CID_V0}", CID_V0),
    (f"https://gateway.lighthouse.storage/ipfs/{CID_V0}", CID_V0),
    (f"https://gateway.lighthouse.storage/ipfs/{CID_V0}/meta.json", CID_V0),
    (CID_V0, CID_V0),
    ("", None),
    (None, None),
    ("https://example.com/metadata.json", None),
])
def test_parse_content_ref(ref, expected):
    assert parse_content_ref(ref) == expected


@pytest.mark.parametrize("raw", ["0-1", "41-1", "5-0"])
def test_off_grid_coordinates_are_distinguished(raw):
    with pytest.raises(OffGridCoordinate) as excinfo:
        normalize(raw)
    assert isinstance(excinfo.value, InvalidIdentity)
    assert excinfo.value.raw == raw


def test_malformed_strings_are_not_off_grid():
    with pytest.raises(InvalidIdentity) as excinfo:
        normalize("5-2-1")
    assert not isinstance(excinfo.value, OffGridCoordinate)

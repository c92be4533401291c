import pytest
from pydantic import BaseModel

from tonearm.errors import ConversionError
from tonearm.model import narrow


class Track(BaseModel):
    id: str


class FullTrack(Track):
    popularity: int


def test_narrow_to_subtype():
    track: Track = FullTrack(id="1", popularity=50)

    assert narrow(track, FullTrack).popularity == 50


def test_narrow_wrong_type():
    with pytest.raises(ConversionError) as exc_info:
        narrow(Track(id="1"), FullTrack)

    assert exc_info.value.expected is FullTrack
    assert exc_info.value.actual is Track

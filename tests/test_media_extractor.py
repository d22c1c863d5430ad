import mimetypes
import os

import pytest

from bridge.conversations.media import TEMP_PREFIX, MediaExtractor
from bridge.conversations.messages import BridgeMessages
from bridge.conversations.models import (
    AudioPayload,
    DocumentPayload,
    ImagePayload,
    MediaRef,
    TextPayload,
    UnsupportedPayload,
    VideoPayload,
)
from bridge.errors import (
    AttachmentDownloadError,
    AttachmentStorageError,
    UnresolvedMimeType,
    UnsupportedMessageType,
)

from conftest import make_message


@pytest.fixture
def mime_table() -> mimetypes.MimeTypes:
    table = mimetypes.MimeTypes()
    table.add_type("audio/x-bridge", ".first")
    table.add_type("audio/x-bridge", ".second")
    table.add_type("video/x-bridge", ".clip")
    table.add_type("application/x-bridge", ".bin")
    return table


@pytest.fixture
def extractor(transport, tmp_path, mime_table) -> MediaExtractor:
    return MediaExtractor(transport, tmp_dir=str(tmp_path / "tmp"), mime_table=mime_table)


def test_plain_text_has_no_attachment(extractor, transport):
    extraction = extractor.extract(make_message(payload=TextPayload("hi")))

    assert extraction.has_attachment is False
    assert extraction.path is None
    assert extraction.caption == ""
    assert transport.downloads == []


def test_image_is_downloaded_to_temp_file(transport, tmp_path):
    transport.media["img-1"] = b"image-bytes"
    extractor = MediaExtractor(transport, tmp_dir=str(tmp_path / "tmp"))
    message = make_message(
        payload=ImagePayload(MediaRef("img-1", "image/png"), caption="broken part")
    )

    extraction = extractor.extract(message)

    assert extraction.has_attachment is True
    assert extraction.name == "image.png"
    assert extraction.caption == "broken part"
    assert os.path.basename(extraction.path).startswith(TEMP_PREFIX)
    with open(extraction.path, "rb") as handle:
        assert handle.read() == b"image-bytes"


def test_last_registered_extension_is_used(extractor):
    extraction = extractor.extract(
        make_message(payload=AudioPayload(MediaRef("a-1", "audio/x-bridge")))
    )

    assert extraction.name == "audio.second"
    assert extraction.caption == ""


def test_content_type_parameters_are_ignored(extractor):
    assert extractor.extension_for("audio/x-bridge; codecs=opus") == ".second"
    assert extractor.extension_for("AUDIO/X-BRIDGE") == ".second"


def test_video_keeps_caption(extractor):
    extraction = extractor.extract(
        make_message(payload=VideoPayload(MediaRef("v-1", "video/x-bridge"), caption="look"))
    )

    assert (extraction.name, extraction.caption) == ("video.clip", "look")


def test_document_name_policy(extractor):
    named = extractor.extract(
        make_message(payload=DocumentPayload(MediaRef("d-1", "application/x-bridge"), "invoice.pdf"))
    )
    unnamed = extractor.extract(
        make_message(payload=DocumentPayload(MediaRef("d-2", "application/x-bridge")))
    )

    assert named.name == "invoice.pdf"
    assert unnamed.name == "document.bin"
    assert named.caption == unnamed.caption == ""


def test_unresolved_mime_type(extractor, transport):
    with pytest.raises(UnresolvedMimeType):
        extractor.extract(make_message(payload=ImagePayload(MediaRef("i", "image/x-unknown-kind"))))
    with pytest.raises(UnresolvedMimeType):
        extractor.extension_for("")
    assert transport.downloads == []


def test_unsupported_message_notifies_exactly_once(extractor, transport):
    message = make_message("S7", TextPayload(""))

    with pytest.raises(UnsupportedMessageType):
        extractor.extract(message)

    assert transport.sent == [("S7", BridgeMessages().unsupported_type)]


def test_unsupported_payload_kind(extractor, transport):
    with pytest.raises(UnsupportedMessageType):
        extractor.extract(make_message(payload=UnsupportedPayload("location")))
    assert len(transport.sent) == 1


def test_empty_extended_text_is_supported(extractor, transport):
    extraction = extractor.extract(make_message(payload=TextPayload("", extended_text="")))

    assert extraction.has_attachment is False
    assert transport.sent == []


def test_extraction_is_repeatable(extractor):
    message = make_message(payload=VideoPayload(MediaRef("v-1", "video/x-bridge"), caption="c"))

    first = extractor.extract(message)
    second = extractor.extract(message)

    assert (first.has_attachment, first.name, first.caption) == (
        second.has_attachment,
        second.name,
        second.caption,
    )
    assert first.path != second.path


def test_download_failure(extractor, transport):
    transport.fail_download = True

    with pytest.raises(AttachmentDownloadError):
        extractor.extract(make_message(payload=AudioPayload(MediaRef("a", "audio/x-bridge"))))


def test_storage_failure(transport, tmp_path, mime_table):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("occupied")
    extractor = MediaExtractor(transport, tmp_dir=str(blocker), mime_table=mime_table)

    with pytest.raises(AttachmentStorageError):
        extractor.extract(make_message(payload=AudioPayload(MediaRef("a", "audio/x-bridge"))))

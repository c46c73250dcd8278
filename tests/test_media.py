from notiwatch.decoding.media import MediaExtractor, load_image

from conftest import png_bytes, write_png


def test_load_image_rejects_garbage(tmp_path):
    assert load_image(b"definitely not an image") is None
    assert load_image(str(tmp_path / "missing.png")) is None
    assert load_image(42) is None
    assert load_image(png_bytes(4, 4)).size == (4, 4)


def test_scan_images_prunes_blocked_keys():
    extractor = MediaExtractor()
    payload = {"keep": png_bytes(50, 50), "drop": {"nested": png_bytes(60, 60)}}

    found = list(extractor.scan_images(payload, blocked_keys=frozenset({"drop"})))
    assert [img.size for img in found] == [(50, 50)]


def test_scan_images_size_window():
    extractor = MediaExtractor()
    payload = [png_bytes(5, 5), png_bytes(3000, 10)]
    assert list(extractor.scan_images(payload)) == []
    assert len(list(extractor.scan_images(payload, ignore_size=True))) == 2


def test_profile_picture_from_known_key():
    extractor = MediaExtractor()
    payload = {"avatar": png_bytes(64, 64), "req": {"content": {"body": "hi"}}}
    assert extractor.find_profile_picture(payload).size == (64, 64)


def test_profile_picture_from_person_image():
    extractor = MediaExtractor()
    payload = {"req": {"content": {"person-image": {"data": png_bytes(40, 40)}}}}
    assert extractor.find_profile_picture(payload).size == (40, 40)


def test_profile_picture_skips_attachment_path(tmp_path):
    photo = write_png(tmp_path / "photo.png", 80, 80)
    extractor = MediaExtractor()
    payload = {
        "icn": photo,
        "req": {"attachments": [{"path": photo}]},
    }
    assert extractor.find_profile_picture(payload) is None


def test_global_square_scan_finds_small_icon():
    extractor = MediaExtractor()
    payload = {"misc": {"blob": png_bytes(300, 200), "icon": png_bytes(48, 48)}}
    assert extractor.find_profile_picture(payload, body="hello").size == (48, 48)


def test_global_scan_disabled_when_body_mentions_media():
    extractor = MediaExtractor()
    payload = {"misc": {"icon": png_bytes(48, 48)}}
    assert extractor.find_profile_picture(payload, body="Sent a photo") is None


def test_global_scan_ignores_sticker_keys():
    extractor = MediaExtractor()
    payload = {"sticker_thumbnail": png_bytes(48, 48)}
    assert extractor.find_profile_picture(payload, body="hey") is None


def test_sticker_from_artwork_key_has_no_size_limit():
    extractor = MediaExtractor()
    payload = {"body_artwork_data": png_bytes(2500, 20)}
    assert extractor.find_sticker_image(payload).size == (2500, 20)


def test_sticker_from_small_attachment(tmp_path):
    small = write_png(tmp_path / "small.png", 160, 160)
    big = write_png(tmp_path / "big.png", 1024, 768)
    extractor = MediaExtractor()

    assert extractor.find_sticker_image({"req": {"attachments": [{"path": small}]}}).size == (160, 160)
    assert extractor.find_sticker_image({"req": {"attachments": [{"path": big}]}}) is None


def test_attachment_prefers_maximize_path(tmp_path):
    thumb = write_png(tmp_path / "thumb.png", 100, 80)
    full = write_png(tmp_path / "full.png", 1000, 800)
    extractor = MediaExtractor()
    payload = {"req": {"attachments": [{"path": thumb, "maximize_path": full}]}}
    assert extractor.find_attachment_image(payload).size == (1000, 800)


def test_attachment_fallback_skips_icon_shaped_images():
    extractor = MediaExtractor()
    payload = {"a": png_bytes(64, 64), "b": png_bytes(90, 60)}
    assert extractor.find_attachment_image(payload).size == (90, 60)
    assert extractor.find_attachment_image({"a": png_bytes(64, 64)}) is None


def test_audio_path_requires_existing_file(tmp_path):
    clip = tmp_path / "voice.OPUS"
    clip.write_bytes(b"\x00")
    extractor = MediaExtractor()
    payload = {"x": [str(tmp_path / "gone.m4a"), {"y": str(clip)}]}
    assert extractor.find_audio_path(payload) == str(clip)
    assert extractor.find_audio_path({"x": str(tmp_path / "gone.m4a")}) is None


def test_extract_collects_all_media(tmp_path):
    photo = write_png(tmp_path / "photo.jpg", 640, 480)
    extractor = MediaExtractor()
    payload = {
        "sender-image": png_bytes(32, 32),
        "req": {"attachments": [{"maximize_path": photo}], "content": {"body": "look"}},
    }
    result = extractor.extract(payload, "look")
    assert result.profile_picture.size == (32, 32)
    assert result.attachment_image.size == (640, 480)
    assert result.sticker_image is None
    assert result.audio_path is None


def test_profile_picture_from_nested_key_next_to_attachments(tmp_path):
    photo = write_png(tmp_path / "photo.png", 800, 600)
    extractor = MediaExtractor()
    payload = {
        "req": {
            "content": {"body": "look", "avatar": png_bytes(150, 150)},
            "attachments": [{"path": photo}],
        }
    }
    assert extractor.find_profile_picture(payload, body="look").size == (150, 150)


def test_nested_profile_key_inside_attachments_is_ignored():
    extractor = MediaExtractor()
    payload = {"req": {"attachments": [{"avatar": png_bytes(50, 50)}]}}
    assert extractor.find_profile_picture(payload, body="Sent a photo") is None


def test_sticker_is_not_reused_as_attachment():
    extractor = MediaExtractor()
    payload = {"sticker": png_bytes(200, 150), "req": {"body": "sticker"}}
    result = extractor.extract(payload, "sticker")
    assert result.sticker_image.size == (200, 150)
    assert result.attachment_image is None


def test_large_avatar_is_not_reused_as_attachment():
    extractor = MediaExtractor()
    payload = {"req": {"content": {"avatar": png_bytes(400, 400), "body": "hi"}}}
    result = extractor.extract(payload, "hi")
    assert result.profile_picture.size == (400, 400)
    assert result.attachment_image is None


def test_audio_search_skips_blocked_keys(tmp_path):
    clip = tmp_path / "clip.m4a"
    clip.write_bytes(b"\x00")
    extractor = MediaExtractor()
    payload = {"avatar": {"path": str(clip)}}
    assert extractor.find_audio_path(payload) == str(clip)
    assert extractor.find_audio_path(payload, blocked_keys=frozenset({"avatar"})) is None

import io

import numpy as np
import pytest
from PIL import Image

from autostudio.core.config import Settings
from autostudio.core.exceptions import ExternalAPIError, ValidationError
from autostudio.engines.studio.buffer import round_half_up
from autostudio.engines.studio.schemas import PhotoMode, UserPreferences
from autostudio.pipeline.removal import SimulatedRemover
from autostudio.pipeline.stages import BatchItem, process_batch, process_photo
from tests.conftest import build_photo, encode

EXPORT_MARKER = "autostudio-export/v1"


def open_output(data):
    image = Image.open(io.BytesIO(data))
    image.load()
    return image


def test_exterior_rests_on_floor(make_photo_bytes):
    # Arrange: car spans 40% of a wide frame and touches the bottom edge
    upload = make_photo_bytes(2400, 900, car=(540, 300, 1499, 899))

    # Act
    result = process_photo(upload, SimulatedRemover(), job_id="job-exterior")

    # Assert
    placement = result.metadata["placement"]
    plan = result.plan
    assert result.mode == PhotoMode.EXTERIOR
    assert result.interior_hint is False
    assert result.metadata["intake"]["is_reprocessed"] is False
    assert plan.canvas_height == round_half_up(plan.canvas_width * 9 / 16)

    min_x, _, max_x, max_y = placement["solid_box"]
    assert abs(plan.top + max_y * plan.scale - plan.floor_y) <= 1
    margin = round_half_up(plan.canvas_width * 0.05)
    assert plan.left + min_x * plan.scale >= margin - 1
    assert plan.left + max_x * plan.scale <= plan.canvas_width - margin + 1

    output = open_output(result.image)
    assert output.format == "JPEG"
    assert output.size == (1920, 1080)
    assert output.info.get("comment") == EXPORT_MARKER.encode()


def test_prior_output_keeps_car_share(make_photo_bytes):
    # Car spans 75% of an export-sized frame
    upload = make_photo_bytes(1920, 1080, car=(240, 300, 1679, 800))

    result = process_photo(upload, SimulatedRemover())

    assert result.metadata["intake"]["is_reprocessed"] is True
    assert result.metadata["placement"]["target_pct"] == pytest.approx(0.75, abs=0.005)
    assert open_output(result.image).size == (1920, 1080)


def test_own_export_is_recognised_by_marker():
    # Arrange
    first = process_photo(encode(build_photo(1600, 900, car=(300, 250, 1299, 780)), "JPEG", quality=95),
                          SimulatedRemover())

    # Act
    second = process_photo(first.image, SimulatedRemover(),
                           config=Settings(REPROCESS_DETECT_BY_DIMENSIONS=False))

    # Assert
    assert first.metadata["intake"]["is_reprocessed"] is False
    assert second.metadata["intake"]["is_reprocessed"] is True


def red_keying_remover(image_bytes):
    """Keeps only the red car opaque, like a service that finds the car in any backdrop."""
    with Image.open(io.BytesIO(image_bytes)) as image:
        rgb = np.array(image.convert("RGB"), dtype=np.int16)
    red = (rgb[:, :, 0] > 150) & (rgb[:, :, 1] < 90) & (rgb[:, :, 2] < 90)
    rgba = np.dstack([rgb.astype(np.uint8), np.where(red, 255, 0).astype(np.uint8)])
    return encode(Image.fromarray(rgba, "RGBA"), "PNG")


def red_car_width(data):
    rgb = np.array(open_output(data).convert("RGB"), dtype=np.int16)
    red = (rgb[:, :, 0] > 150) & (rgb[:, :, 1] < 90) & (rgb[:, :, 2] < 90)
    cols = np.flatnonzero(red.any(axis=0))
    return int(cols[-1] - cols[0] + 1)


def test_refeeding_export_keeps_car_size(make_photo_bytes):
    # Arrange: export-sized frame, car spans 75% of the width
    upload = make_photo_bytes(1920, 1080, car=(240, 300, 1679, 800))

    # Act
    first = process_photo(upload, red_keying_remover, job_id="pass-1")
    second = process_photo(first.image, red_keying_remover, job_id="pass-2")

    # Assert
    assert first.metadata["intake"]["is_reprocessed"] is True
    assert second.metadata["intake"]["is_reprocessed"] is True
    assert first.metadata["conditioning"]["trimmed_margins"]["top"] > 0
    assert first.plan.scale == pytest.approx(1.0, abs=0.01)
    assert second.plan.scale == pytest.approx(1.0, abs=0.01)

    first_width = red_car_width(first.image)
    second_width = red_car_width(second.image)
    assert abs(first_width - 1440) <= 10
    assert abs(second_width - first_width) <= 6


def test_interior_is_centered_on_dark_fill(make_photo_bytes, opaque_remover):
    upload = make_photo_bytes(800, 600, car=(100, 100, 699, 499))

    result = process_photo(upload, opaque_remover)

    assert result.mode == PhotoMode.INTERIOR
    assert result.plan.floor_y is None
    assert result.metadata["placement"]["mode"] == "interior"
    assert open_output(result.image).size == (1920, 1080)


def test_background_logo_and_preferences(make_photo_bytes, encode_image):
    # Arrange
    upload = make_photo_bytes(1600, 900, car=(400, 300, 1199, 760))
    background = encode_image(Image.new("RGB", (1280, 720), (240, 240, 240)), "JPEG")
    logo = encode_image(Image.new("RGBA", (40, 20), (0, 0, 255, 255)), "PNG")
    prefs = UserPreferences(car_scale=70, logo_scale=15, shadow_intensity=30)

    # Act
    result = process_photo(upload, SimulatedRemover(), preferences=prefs, background=background, logo=logo)

    # Assert
    assert result.metadata["conditioning"]["shadow_intensity"] == 30
    assert result.metadata["placement"]["target_pct"] == pytest.approx(0.70)
    assert result.metadata["composite"]["background"] == "template"
    assert result.metadata["composite"]["logo"] is True
    r, g, b = open_output(result.image).getpixel((1920 - 25 - 144, 25 + 20))
    assert b > 200 and r < 60


def test_debug_overlay_follows_environment(make_photo_bytes):
    upload = make_photo_bytes(1600, 900, car=(400, 300, 1199, 760))

    debug = process_photo(upload, SimulatedRemover(), config=Settings(DEBUG_OVERLAY=True))
    production = process_photo(
        upload, SimulatedRemover(), config=Settings(DEBUG_OVERLAY=True, ENVIRONMENT="production")
    )

    assert debug.metadata["composite"]["overlay"] is True
    assert production.metadata["composite"]["overlay"] is False


def test_cutout_without_alpha_renders_as_interior(make_photo_bytes, encode_image):
    # Arrange: the remover hands back the photo with no transparency at all
    def remover(image_bytes):
        with Image.open(io.BytesIO(image_bytes)) as image:
            return encode_image(image.convert("RGB"), "PNG")

    # Act
    result = process_photo(make_photo_bytes(800, 600, car=(100, 100, 699, 499)), remover, job_id="job-rgb")

    # Assert
    assert result.mode == PhotoMode.INTERIOR
    assert result.interior_hint is True
    assert result.metadata["removal"]["has_alpha"] is False
    assert result.plan.floor_y is None
    assert open_output(result.image).size == (1920, 1080)


def test_removal_service_error_fails_job(make_photo_bytes):
    def remover(image_bytes):
        return b"<html>bad gateway</html>"

    with pytest.raises(ExternalAPIError) as exc_info:
        process_photo(make_photo_bytes(200, 100), remover, job_id="job-bad")

    assert exc_info.value.stage == "removal"
    assert exc_info.value.job_id == "job-bad"


def test_batch_isolates_failures(make_photo_bytes):
    # Arrange
    good = make_photo_bytes(1200, 600, car=(300, 200, 899, 560))
    items = [
        BatchItem(upload_bytes=good, job_id="first"),
        b"corrupted upload bytes",
        BatchItem(upload_bytes=good, preferences=UserPreferences(shadow_intensity=0), job_id="third"),
    ]

    # Act
    outcomes = process_batch(items, SimulatedRemover(), max_workers=3)

    # Assert
    assert [outcome.ok for outcome in outcomes] == [True, False, True]
    assert outcomes[0].job_id == "first"
    assert outcomes[2].job_id == "third"
    assert outcomes[1].job_id
    assert isinstance(outcomes[1].error, ValidationError)
    assert outcomes[1].error.to_dict()["stage"] == "intake"
    assert outcomes[0].result.job_id == "first"
    assert outcomes[2].result.metadata["conditioning"]["shadow_intensity"] == 0

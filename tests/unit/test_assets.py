import pytest

from autostudio.core.exceptions import AssetError
from autostudio.engines.studio.schemas import UserPreferences
from autostudio.engines.studio.templates import (
    BACKGROUND_TEMPLATES,
    DEFAULT_BACKGROUND,
    BackgroundRef,
    resolve_background,
)
from autostudio.pipeline.assets import LocalAssetStore


# =============================================================================
# Template ids
# =============================================================================

@pytest.mark.parametrize("template_id", BACKGROUND_TEMPLATES)
def test_known_templates_resolve(template_id):
    assert resolve_background(template_id) == BackgroundRef(template_id)


def test_missing_or_unknown_template_uses_default():
    assert resolve_background(None).template_id == DEFAULT_BACKGROUND
    assert resolve_background("marble-hall").template_id == DEFAULT_BACKGROUND


def test_unknown_template_strict_raises():
    with pytest.raises(AssetError) as exc_info:
        resolve_background("marble-hall", strict=True)

    assert exc_info.value.code == 404
    assert exc_info.value.details["asset_id"] == "marble-hall"


def test_user_background_requires_owner():
    own = resolve_background("user:dealer-1/lot.jpg", owner_id="dealer-1")
    foreign = resolve_background("user:dealer-2/lot.jpg", owner_id="dealer-1")
    anonymous = resolve_background("user:dealer-1/lot.jpg")

    assert own.is_user_upload and own.user_path == "dealer-1/lot.jpg"
    assert not foreign.is_user_upload
    assert not anonymous.is_user_upload
    with pytest.raises(AssetError):
        resolve_background("user:dealer-2/lot.jpg", owner_id="dealer-1", strict=True)


# =============================================================================
# Preferences
# =============================================================================

def test_preferences_resolve_to_fractions():
    prefs = UserPreferences(car_scale=80, logo_scale=15, shadow_intensity=40)

    assert prefs.target_width_pct(0.82) == pytest.approx(0.80)
    assert prefs.logo_width_pct(0.10) == pytest.approx(0.15)
    assert prefs.shadow_intensity_value() == 40


def test_preferences_defaults_and_clamps():
    assert UserPreferences().target_width_pct(0.82) == 0.82
    assert UserPreferences(logo_scale=0).logo_width_pct(0.10) == 0.10
    assert UserPreferences(car_scale=40).target_width_pct(0.82) == 0.60
    assert UserPreferences(logo_scale=50).logo_width_pct(0.10) == 0.20
    assert UserPreferences(shadow_intensity=0).shadow_intensity_value() == 0
    assert UserPreferences(shadow_intensity=150).shadow_intensity_value() == 100


# =============================================================================
# Local asset store
# =============================================================================

@pytest.fixture
def store(tmp_path):
    (tmp_path / "backgrounds").mkdir()
    (tmp_path / "users" / "dealer-1").mkdir(parents=True)
    (tmp_path / "logos").mkdir()
    (tmp_path / "backgrounds" / "studio-white.jpg").write_bytes(b"white")
    (tmp_path / "backgrounds" / "showroom-grey.jpg").write_bytes(b"grey")
    (tmp_path / "users" / "dealer-1" / "lot.jpg").write_bytes(b"lot")
    (tmp_path / "logos" / "dealer-1.png").write_bytes(b"logo")
    return LocalAssetStore(
        templates_dir=str(tmp_path / "backgrounds"),
        user_backgrounds_dir=str(tmp_path / "users"),
        logos_dir=str(tmp_path / "logos"),
    )


def test_load_template(store):
    assert store.load_template("studio-white") == b"white"
    assert store.load_template("studio-gray") is None


def test_load_user_background_falls_back_to_template(store):
    assert store.load_background(BackgroundRef("showroom-grey", user_path="dealer-1/lot.jpg")) == b"lot"
    assert store.load_background(BackgroundRef("showroom-grey", user_path="dealer-1/gone.jpg")) == b"grey"


def test_path_escape_rejected(store):
    assert store.load_background(BackgroundRef("missing", user_path="dealer-1/../../logos/dealer-1.png")) is None


def test_load_for_job(store):
    # Act
    background, logo = store.load_for_job("user:dealer-1/lot.jpg", owner_id="dealer-1")
    default_background, no_logo = store.load_for_job(None)

    # Assert
    assert (background, logo) == (b"lot", b"logo")
    assert default_background == b"grey"
    assert no_logo is None

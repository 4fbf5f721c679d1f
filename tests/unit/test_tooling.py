from PIL import Image

from analyze_samples import analyze_sample
from autostudio.engines.studio.schemas import PhotoMode
from autostudio.engines.studio.templates import BACKGROUND_TEMPLATES
from scripts.generate_templates import TEMPLATES, generate_templates


def test_every_template_id_has_a_renderer():
    assert set(TEMPLATES) == set(BACKGROUND_TEMPLATES)


def test_generate_templates_writes_jpegs(tmp_path):
    # Act
    written = generate_templates(tmp_path / "backgrounds", width=160, height=90)

    # Assert
    assert sorted(path.stem for path in written) == sorted(BACKGROUND_TEMPLATES)
    for path in written:
        with Image.open(path) as image:
            assert image.format == "JPEG"
            assert image.size == (160, 90)


def test_analyze_sample_reports_plan(tmp_path, make_cutout):
    path = tmp_path / "cutout.png"
    path.write_bytes(make_cutout(1200, 600, body=(100, 100, 1099, 529)).to_png())

    classification, plan = analyze_sample(path, 0.82)

    assert classification.mode == PhotoMode.EXTERIOR
    assert plan.canvas_size == (1920, 1080)
    assert 0.69 <= plan.width_pct <= 0.91

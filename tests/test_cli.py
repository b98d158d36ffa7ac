import json

import pytest
from PIL import Image

from ice.cli import build_parser, main


@pytest.fixture
def photo(tmp_path, image_factory):
    p = tmp_path / "photo.png"
    p.write_bytes(image_factory("PNG", size=(80, 60)))
    return p


def test_estimate_prints_sizes(photo, capsys):
    assert main(["estimate", str(photo), "--webp", "--quality", "50"]) == 0
    out = capsys.readouterr().out
    assert "=== Estimate ===" in out
    assert "WEBP 80x60 @ quality 50" in out
    assert "Ratio" in out


def test_estimate_lossless_format_hides_quality(photo, capsys):
    assert main(["estimate", str(photo), "--png", "--quality", "10"]) == 0
    out = capsys.readouterr().out
    assert "PNG 80x60" in out
    assert "quality" not in out


def test_convert_writes_file_and_report(photo, tmp_path, capsys):
    out_dir = tmp_path / "out"
    report = tmp_path / "report.json"

    code = main([
        "convert", str(photo), "--out", str(out_dir), "--jpeg",
        "--resize", "40x30", "--report", str(report),
    ])
    assert code == 0

    written = out_dir / "photo.jpeg"
    assert written.exists()
    assert Image.open(written).size == (40, 30)

    data = json.loads(report.read_text(encoding="utf-8"))
    assert data["src_name"] == "photo.png"
    assert data["out_format"] == "jpeg"
    assert data["out_bytes"] == written.stat().st_size
    assert data["out_path"] == str(written)


def test_convert_with_embedded_ratio(photo, tmp_path):
    out_dir = tmp_path / "out"
    assert main(["convert", str(photo), "--out", str(out_dir), "--bmp", "--embed-ratio"]) == 0
    names = [p.name for p in out_dir.iterdir()]
    assert len(names) == 1
    assert names[0].startswith("photo-") and names[0].endswith("pct-larger.bmp")


def test_preset_overrides_format(photo, tmp_path):
    out_dir = tmp_path / "out"
    assert main(["convert", str(photo), "--out", str(out_dir), "--preset", "web"]) == 0
    assert (out_dir / "photo.webp").exists()


def test_non_image_is_an_error(tmp_path, capsys):
    notes = tmp_path / "notes.txt"
    notes.write_text("hello", encoding="utf-8")
    assert main(["estimate", str(notes)]) == 1
    assert "Please select an image file" in capsys.readouterr().err


def test_missing_file(tmp_path, capsys):
    assert main(["estimate", str(tmp_path / "nope.png")]) == 1
    assert "file not found" in capsys.readouterr().err


def test_bad_quality_is_a_usage_error(photo, capsys):
    assert main(["estimate", str(photo), "--quality", "0"]) == 2


def test_resize_argument_validation():
    parser = build_parser()
    with pytest.raises(SystemExit):
        parser.parse_args(["estimate", "x.png", "--resize", "800"])
    args = parser.parse_args(["estimate", "x.png", "--resize", "800X600"])
    assert args.resize == (800, 600)


def test_unreadable_input_is_an_error(tmp_path, capsys):
    folder = tmp_path / "folder.png"
    folder.mkdir()
    assert main(["estimate", str(folder)]) == 1
    assert "cannot read" in capsys.readouterr().err


def test_badly_typed_config_is_a_usage_error(photo, tmp_path, capsys):
    cfg = tmp_path / "ice.json"
    cfg.write_text(json.dumps({"max_file_bytes": "x"}), encoding="utf-8")
    assert main(["estimate", str(photo), "--config", str(cfg)]) == 2
    assert "max_file_bytes" in capsys.readouterr().err

"""
Test Suite for the OCR Pipeline
===============================
Tests for image splitting/enhancement, the recognizer, file handling,
the pipeline orchestrator and the command-line entry points.

Tesseract itself is never invoked: the pipeline tests inject a stub
recognizer and the Tesseract adapter tests patch pytesseract.
"""

from __future__ import annotations

import json
import shlex
import sys
from pathlib import Path
from unittest.mock import patch

import pytesseract
import pytest
from click.testing import CliRunner
from PIL import Image

from mcq_ocr.cli import cli
from mcq_ocr.engine import OcrPipeline, PipelineConfig
from mcq_ocr.errors import (
    EXIT_MISSING_IMAGE,
    EXIT_NO_QUESTIONS,
    EXIT_NO_TEXT,
    EXIT_OK,
    EXIT_PROCESSING_FAILED,
    EmptyRecognitionError,
    ImageMetadataError,
    RecognitionError,
    exit_code_for,
)
from mcq_ocr.image_processor import ImageProcessor, compute_column_regions
from mcq_ocr.models import ColumnName, ColumnRegion, Question, QuestionOption, ResultDocument
from mcq_ocr.recognizer import (
    CHAR_WHITELIST,
    TesseractRecognizer,
    TextRecognizer,
)
from mcq_ocr.storage import (
    OUTPUT_FILE_NAME,
    enhanced_image_path,
    output_path_for,
    resolve_image_path,
    temporary_files,
)
from mcq_ocr.writer import ResultWriter

LEFT_COLUMN_TEXT = (
    "1. What is 2+2?\n"
    "a) 3 b) 4\n"
    "c) 5 d) 6\n"
    "3. Which is the smallest prime? a) 1 b) 2 c) 3 d) 5\n"
)
RIGHT_COLUMN_TEXT = (
    "2. What is 3+3?\n"
    "a) 6 b) 7\n"
    "3. Duplicate from right side? a) 1 b) 2\n"
)


class StubRecognizer(TextRecognizer):
    """Returns canned text per call, left column first."""

    def __init__(self, texts, fail=False):
        self.texts = list(texts)
        self.fail = fail
        self.opened = False
        self.closed = False
        self.seen = []

    def open(self):
        self.opened = True

    def close(self):
        self.closed = True

    def recognize(self, image_path, progress_callback=None):
        self.seen.append((Path(image_path), Path(image_path).exists()))
        if progress_callback:
            progress_callback(0.0)
        if self.fail:
            raise RecognitionError("engine crashed")
        text = self.texts.pop(0)
        if progress_callback:
            progress_callback(100.0)
        return text


def _make_image(path: Path, size=(200, 100), color="white") -> Path:
    Image.new("RGB", size, color).save(path)
    return path


@pytest.fixture
def sheet(tmp_path):
    return _make_image(tmp_path / "sheet.png")


def _pipeline(sheet: Path, stub: StubRecognizer, echoed=None, **overrides):
    config = PipelineConfig(
        image_path=str(sheet),
        work_dir=str(sheet.parent / "work"),
        echo_json=False,
        **overrides,
    )
    echo = echoed.append if echoed is not None else None
    return OcrPipeline(config, recognizer_factory=lambda c: stub, echo=echo)


# ═══════════════════════════════════════════════════════════════════════════════
# IMAGE PROCESSOR TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestColumnRegions:
    """Test the fixed 50/50 split."""

    def test_even_width(self):
        regions = compute_column_regions(1000, 1400)
        left, right = regions[ColumnName.LEFT], regions[ColumnName.RIGHT]

        assert (left.left, left.top, left.width, left.height) == (0, 0, 500, 1400)
        assert (right.left, right.top, right.width, right.height) == (500, 0, 500, 1400)

    def test_odd_width_drops_last_pixel_column(self):
        regions = compute_column_regions(1001, 10)
        assert regions[ColumnName.LEFT].width == 500
        assert regions[ColumnName.RIGHT].left == 500
        assert regions[ColumnName.RIGHT].box == (500, 0, 1000, 10)

    @pytest.mark.parametrize("width,height", [(1, 10), (0, 10), (10, 0)])
    def test_too_small(self, width, height):
        with pytest.raises(ImageMetadataError):
            compute_column_regions(width, height)


class TestImageProcessor:
    """Test the enhancement chain."""

    def test_invalid_threshold(self):
        with pytest.raises(ValueError):
            ImageProcessor(threshold=256)

    def test_read_dimensions(self, tmp_path):
        path = _make_image(tmp_path / "a.png", size=(321, 123))
        assert ImageProcessor().read_dimensions(path) == (321, 123)

    def test_read_dimensions_not_an_image(self, tmp_path):
        path = tmp_path / "a.png"
        path.write_text("not an image")
        with pytest.raises(ImageMetadataError):
            ImageProcessor().read_dimensions(path)

    def test_enhanced_size_and_mode(self):
        image = Image.new("RGB", (200, 100), "white")
        region = ColumnRegion(left=0, top=0, width=100, height=100)

        enhanced = ImageProcessor().enhance(image, region)

        assert enhanced.mode == "L"
        assert enhanced.size == (200, 200)

    @pytest.mark.parametrize("gray,expected", [(100, 0), (200, 255)])
    def test_binarized_at_threshold(self, gray, expected):
        image = Image.new("L", (40, 40), gray)
        region = ColumnRegion(left=0, top=0, width=20, height=40)

        enhanced = ImageProcessor().enhance(image, region)

        assert set(enhanced.getdata()) == {expected}

    def test_enhance_region_writes_png(self, sheet, tmp_path):
        region = compute_column_regions(200, 100)[ColumnName.RIGHT]
        dest = tmp_path / "out" / "right.png"

        written = ImageProcessor().enhance_region(sheet, region, dest)

        assert written == dest
        with Image.open(dest) as image:
            assert image.format == "PNG"
            assert image.size == (200, 200)


# ═══════════════════════════════════════════════════════════════════════════════
# RECOGNIZER TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestTesseractRecognizer:
    """Test the pytesseract adapter."""

    def test_build_config(self):
        config = TesseractRecognizer().build_config()
        args = shlex.split(config)

        assert args[:2] == ["--psm", "4"]
        assert "preserve_interword_spaces=1" in args
        assert f"tessedit_char_whitelist={CHAR_WHITELIST}" in args

    def test_build_config_without_whitelist(self):
        config = TesseractRecognizer(char_whitelist="").build_config()
        assert "tessedit_char_whitelist" not in config

    def test_recognize(self, sheet):
        progress = []
        with patch(
            "mcq_ocr.recognizer.pytesseract.image_to_string",
            return_value="1. Raw text",
        ) as image_to_string:
            text = TesseractRecognizer().recognize(sheet, progress.append)

        assert text == "1. Raw text"
        assert progress == [0.0, 100.0]
        assert image_to_string.call_args.kwargs["lang"] == "eng"

    def test_recognize_failure(self, sheet):
        with patch(
            "mcq_ocr.recognizer.pytesseract.image_to_string",
            side_effect=pytesseract.TesseractError(1, "boom"),
        ):
            with pytest.raises(RecognitionError):
                TesseractRecognizer().recognize(sheet)

    def test_missing_binary(self):
        with patch(
            "mcq_ocr.recognizer.pytesseract.get_tesseract_version",
            side_effect=pytesseract.TesseractNotFoundError(),
        ):
            with pytest.raises(RecognitionError):
                with TesseractRecognizer():
                    pass

    def test_context_manager_releases(self):
        with patch(
            "mcq_ocr.recognizer.pytesseract.get_tesseract_version",
            return_value="5.3.0",
        ):
            recognizer = TesseractRecognizer()
            with recognizer:
                assert recognizer.version == "5.3.0"
            assert recognizer.version is None


# ═══════════════════════════════════════════════════════════════════════════════
# STORAGE / WRITER TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestStorage:
    """Test file locations and transient file cleanup."""

    def test_output_beside_image(self, tmp_path):
        assert output_path_for(tmp_path / "x.jpg") == tmp_path / OUTPUT_FILE_NAME

    def test_enhanced_image_names(self, tmp_path):
        assert enhanced_image_path(tmp_path, ColumnName.LEFT).name == "left-preprocessed.png"
        assert enhanced_image_path(tmp_path, ColumnName.RIGHT).name == "right-preprocessed.png"

    def test_resolve_missing_image(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="Image file not found"):
            resolve_image_path(tmp_path / "missing.jpg")

    def test_resolve_existing_image(self, sheet):
        assert resolve_image_path(str(sheet)) == sheet.absolute()

    def test_temporary_files_removed_on_error(self, tmp_path):
        a, b = tmp_path / "a.png", tmp_path / "b.png"
        with pytest.raises(RuntimeError):
            with temporary_files(a, b):
                a.write_bytes(b"x")
                raise RuntimeError("fail")

        assert not a.exists()
        assert not b.exists()


class TestResultWriter:
    """Test JSON output."""

    def test_echo_before_write(self, tmp_path):
        output = tmp_path / "nested" / OUTPUT_FILE_NAME
        seen = []

        def echo(payload):
            seen.append((payload, output.exists()))

        doc = ResultDocument(image_file="image.jpg")
        ResultWriter(echo=echo).write(doc, output)

        assert seen == [(doc.to_json(), False)]
        assert json.loads(output.read_text(encoding="utf-8")) == {
            "imageFile": "image.jpg",
            "questions": [],
        }

    def test_non_ascii_preserved(self, tmp_path):
        doc = ResultDocument(
            image_file="image.jpg",
            questions=[Question(
                question_number=1,
                text="Find the angle θ here?",
                options=[QuestionOption(key="a", text="π"), QuestionOption(key="b", text="2")],
            )],
        )
        path = ResultWriter().write(doc, tmp_path / OUTPUT_FILE_NAME)
        assert "θ" in path.read_text(encoding="utf-8")


# ═══════════════════════════════════════════════════════════════════════════════
# PIPELINE TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestOcrPipeline:
    """Test the orchestrator with a stub recognizer."""

    def test_end_to_end(self, sheet):
        stub = StubRecognizer([LEFT_COLUMN_TEXT, RIGHT_COLUMN_TEXT])
        echoed = []
        progress = []

        result = _pipeline(sheet, stub, echoed).run(
            lambda column, percent: progress.append((column, percent))
        )

        doc = result.document
        assert doc.image_file == "sheet.png"
        assert [q.question_number for q in doc.questions] == [1, 2, 3]
        assert doc.questions[0].text == "What is 2+2?"
        assert [o.text for o in doc.questions[0].options] == ["3", "4", "5", "6"]
        # Left column came first, so its question 3 wins
        assert doc.questions[2].text == "Which is the sma11est prime?"

        assert result.validation.total_blocks_accepted == 4
        assert result.validation.duplicate_question_numbers == [3]
        assert progress == [
            (ColumnName.LEFT, 0.0), (ColumnName.LEFT, 100.0),
            (ColumnName.RIGHT, 0.0), (ColumnName.RIGHT, 100.0),
        ]

        output = sheet.parent / OUTPUT_FILE_NAME
        assert result.output_path == output
        assert output.read_text(encoding="utf-8") == doc.to_json()
        assert echoed == [doc.to_json()]

    def test_enhanced_images_exist_only_during_run(self, sheet):
        stub = StubRecognizer([LEFT_COLUMN_TEXT, RIGHT_COLUMN_TEXT])
        _pipeline(sheet, stub).run()

        work_dir = sheet.parent / "work"
        assert [p.name for p, _ in stub.seen] == [
            "left-preprocessed.png", "right-preprocessed.png",
        ]
        assert all(existed for _, existed in stub.seen)
        assert not list(work_dir.glob("*.png"))
        assert stub.opened and stub.closed

    def test_custom_output_path(self, sheet, tmp_path):
        stub = StubRecognizer([LEFT_COLUMN_TEXT, RIGHT_COLUMN_TEXT])
        output = tmp_path / "out" / "result.json"

        result = _pipeline(sheet, stub, output_path=str(output)).run()

        assert result.output_path == output
        assert output.exists()

    def test_one_empty_column(self, sheet):
        stub = StubRecognizer([LEFT_COLUMN_TEXT, "  \n"])
        result = _pipeline(sheet, stub).run()

        assert [q.question_number for q in result.document.questions] == [1, 3]
        assert result.columns[1].is_empty

    def test_no_text_recognized(self, sheet):
        stub = StubRecognizer(["", " \n\f"])

        with pytest.raises(EmptyRecognitionError):
            _pipeline(sheet, stub).run()

        assert not (sheet.parent / OUTPUT_FILE_NAME).exists()
        assert not list((sheet.parent / "work").glob("*.png"))
        assert stub.closed

    def test_no_questions_still_written(self, sheet):
        stub = StubRecognizer(["just some noise", "more noise"])
        result = _pipeline(sheet, stub).run()

        assert result.document.questions == []
        data = json.loads((sheet.parent / OUTPUT_FILE_NAME).read_text(encoding="utf-8"))
        assert data == {"imageFile": "sheet.png", "questions": []}

    def test_recognition_failure_releases_resources(self, sheet):
        stub = StubRecognizer([], fail=True)

        with pytest.raises(RecognitionError):
            _pipeline(sheet, stub).run()

        assert stub.closed
        assert not list((sheet.parent / "work").glob("*.png"))
        assert not (sheet.parent / OUTPUT_FILE_NAME).exists()

    def test_unreadable_image_metadata(self, tmp_path):
        not_an_image = tmp_path / "sheet.png"
        not_an_image.write_text("not an image")
        stub = StubRecognizer([LEFT_COLUMN_TEXT, RIGHT_COLUMN_TEXT])

        with pytest.raises(ImageMetadataError):
            _pipeline(not_an_image, stub).run()

        assert stub.closed
        assert stub.seen == []
        assert not list((tmp_path / "work").glob("*.png"))
        assert not (tmp_path / OUTPUT_FILE_NAME).exists()

    def test_missing_image(self, tmp_path):
        stub = StubRecognizer([])
        config = PipelineConfig(image_path=str(tmp_path / "nope.jpg"), echo_json=False)

        with pytest.raises(FileNotFoundError):
            OcrPipeline(config, recognizer_factory=lambda c: stub).run()

        assert not stub.opened


class TestExitCodes:
    """Test error to exit code mapping."""

    def test_mapping(self):
        assert exit_code_for(FileNotFoundError("x")) == EXIT_MISSING_IMAGE
        assert exit_code_for(ImageMetadataError("x")) == EXIT_PROCESSING_FAILED
        assert exit_code_for(RecognitionError("x")) == EXIT_PROCESSING_FAILED
        assert exit_code_for(EmptyRecognitionError("x")) == EXIT_NO_TEXT
        assert exit_code_for(ValueError("x")) == EXIT_PROCESSING_FAILED


# ═══════════════════════════════════════════════════════════════════════════════
# CLI TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestCli:
    """Test the click commands."""

    def test_process_json_output(self, sheet):
        stub = StubRecognizer([LEFT_COLUMN_TEXT, RIGHT_COLUMN_TEXT])
        with patch("mcq_ocr.engine.default_recognizer_factory", return_value=stub):
            result = CliRunner().invoke(cli, ["process", str(sheet), "--json-output"])

        assert result.exit_code == EXIT_OK
        data = json.loads(result.stdout)
        assert [q["questionNumber"] for q in data["questions"]] == [1, 2, 3]
        assert (sheet.parent / OUTPUT_FILE_NAME).exists()

    def test_process_rich_output(self, sheet):
        stub = StubRecognizer([LEFT_COLUMN_TEXT, RIGHT_COLUMN_TEXT])
        with patch("mcq_ocr.engine.default_recognizer_factory", return_value=stub):
            result = CliRunner().invoke(cli, ["process", str(sheet)])

        assert result.exit_code == EXIT_OK
        assert "Extracted Questions" in result.stdout

    def test_process_missing_image(self, tmp_path):
        result = CliRunner().invoke(
            cli, ["process", str(tmp_path / "nope.jpg"), "--json-output"]
        )
        assert result.exit_code == EXIT_MISSING_IMAGE

    def test_process_no_text(self, sheet):
        stub = StubRecognizer(["", ""])
        with patch("mcq_ocr.engine.default_recognizer_factory", return_value=stub):
            result = CliRunner().invoke(cli, ["process", str(sheet), "--json-output"])

        assert result.exit_code == EXIT_NO_TEXT
        assert not (sheet.parent / OUTPUT_FILE_NAME).exists()

    def test_process_no_questions(self, sheet):
        stub = StubRecognizer(["noise", "noise"])
        with patch("mcq_ocr.engine.default_recognizer_factory", return_value=stub):
            result = CliRunner().invoke(cli, ["process", str(sheet), "--json-output"])

        assert result.exit_code == EXIT_NO_QUESTIONS
        assert (sheet.parent / OUTPUT_FILE_NAME).exists()

    def test_parse_text(self, tmp_path):
        text_file = tmp_path / "raw.txt"
        text_file.write_text(LEFT_COLUMN_TEXT, encoding="utf-8")

        result = CliRunner().invoke(
            cli, ["parse-text", str(text_file), "--image-name", "scan.jpg"]
        )

        assert result.exit_code == EXIT_OK
        data = json.loads(result.stdout)
        assert data["imageFile"] == "scan.jpg"
        assert [q["questionNumber"] for q in data["questions"]] == [1, 3]

    def test_parse_text_no_questions(self, tmp_path):
        text_file = tmp_path / "raw.txt"
        text_file.write_text("nothing here", encoding="utf-8")

        result = CliRunner().invoke(cli, ["parse-text", str(text_file)])
        assert result.exit_code == EXIT_NO_QUESTIONS

    def test_clean_from_stdin(self):
        result = CliRunner().invoke(cli, ["clean"], input="rOOt  cquation\n")
        assert result.exit_code == EXIT_OK
        assert result.stdout == "root equation\n"

    def test_info(self, tmp_path):
        path = _make_image(tmp_path / "a.png", size=(300, 120))
        result = CliRunner().invoke(cli, ["info", str(path)])

        assert result.exit_code == EXIT_OK
        assert "300 x 120" in result.stdout

    def test_validate_ok(self, tmp_path):
        path = tmp_path / OUTPUT_FILE_NAME
        path.write_text(json.dumps({
            "imageFile": "image.jpg",
            "questions": [
                {"questionNumber": 1, "text": "What is 2+2?",
                 "options": [{"key": "a", "text": "3"}, {"key": "b", "text": "4"}]},
                {"questionNumber": 2, "text": "What is 3+3?",
                 "options": [{"key": "a", "text": "6"}, {"key": "b", "text": "7"}]},
            ],
        }), encoding="utf-8")

        result = CliRunner().invoke(cli, ["validate", str(path)])
        assert result.exit_code == EXIT_OK

    def test_validate_unsorted(self, tmp_path):
        path = tmp_path / OUTPUT_FILE_NAME
        path.write_text(json.dumps({
            "imageFile": "image.jpg",
            "questions": [
                {"questionNumber": 2, "text": "What is 3+3?", "options": []},
                {"questionNumber": 1, "text": "What is 2+2?", "options": []},
            ],
        }), encoding="utf-8")

        result = CliRunner().invoke(cli, ["validate", str(path)])
        assert result.exit_code == EXIT_PROCESSING_FAILED

    def test_validate_invalid_json(self, tmp_path):
        path = tmp_path / OUTPUT_FILE_NAME
        path.write_text("{not json", encoding="utf-8")

        result = CliRunner().invoke(cli, ["validate", str(path)])
        assert result.exit_code == EXIT_PROCESSING_FAILED


# ═══════════════════════════════════════════════════════════════════════════════
# ONE-SHOT ENTRY POINT TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestMain:
    """Test main.py exit codes."""

    def test_missing_image(self, tmp_path, monkeypatch):
        import main

        monkeypatch.setattr(
            sys, "argv", ["main.py", "--image", str(tmp_path / "nope.jpg")]
        )
        assert main.main() == EXIT_MISSING_IMAGE

    def test_success(self, sheet, tmp_path, monkeypatch, capsys):
        import main

        output = tmp_path / "result.json"
        stub = StubRecognizer([LEFT_COLUMN_TEXT, RIGHT_COLUMN_TEXT])
        monkeypatch.setattr(
            sys, "argv",
            ["main.py", "--image", str(sheet), "--output", str(output)],
        )
        with patch("mcq_ocr.engine.default_recognizer_factory", return_value=stub):
            assert main.main() == EXIT_OK

        assert output.exists()
        assert '"questionNumber": 1' in capsys.readouterr().out

    def test_no_text(self, sheet, monkeypatch):
        import main

        stub = StubRecognizer(["", ""])
        monkeypatch.setattr(sys, "argv", ["main.py", "--image", str(sheet)])
        with patch("mcq_ocr.engine.default_recognizer_factory", return_value=stub):
            assert main.main() == EXIT_NO_TEXT

"""Tests for pdf_dataset.ocr."""

from __future__ import annotations

import gzip
import unittest
from pathlib import Path
from unittest.mock import patch

import httpx
import pytest
import pytesseract

from pdf_dataset.ocr import (
    TesseractWorker,
    WorkerLease,
    create_worker,
    load_ocr_worker,
    recognize_page,
    recognize_pages,
)
from pdf_dataset.utils import (
    MissingDependencyError,
    PageRecognitionError,
    ResourceUnavailableError,
    RunCancelledError,
)
from tests.helpers import FakeDocument, FakeWorker, RecordingFactory, png_bytes

PATHS = ["https://a.example/", "https://b.example/", "https://c.example/"]


class TestLoadOcrWorker(unittest.TestCase):
    def test_first_success_wins(self) -> None:
        worker = FakeWorker([])
        factory = RecordingFactory(worker, failing={PATHS[0]})
        loaded = load_ocr_worker(PATHS, "mya", factory=factory)
        self.assertIs(loaded, worker)
        self.assertEqual(factory.attempts, [("mya", PATHS[0]), ("mya", PATHS[1])])

    def test_first_location_only_when_it_works(self) -> None:
        factory = RecordingFactory(FakeWorker([]))
        load_ocr_worker(PATHS, "mya", factory=factory)
        self.assertEqual(len(factory.attempts), 1)

    def test_all_fail_raises_with_last_error(self) -> None:
        factory = RecordingFactory(failing=set(PATHS))
        with self.assertRaises(ResourceUnavailableError) as ctx:
            load_ocr_worker(PATHS, "mya", factory=factory)
        self.assertEqual([path for _, path in factory.attempts], PATHS)
        self.assertEqual([path for path, _ in ctx.exception.errors], PATHS)
        self.assertIn(PATHS[2], str(ctx.exception.last_error))
        self.assertIn("Last error", str(ctx.exception))

    def test_no_locations(self) -> None:
        with self.assertRaises(ResourceUnavailableError):
            load_ocr_worker([], "mya", factory=RecordingFactory())


class TestWorkerLease(unittest.TestCase):
    def test_release_terminates_once(self) -> None:
        worker = FakeWorker([])
        lease = WorkerLease(worker)
        self.assertTrue(lease.release())
        self.assertFalse(lease.release())
        self.assertEqual(worker.terminate_calls, 1)
        self.assertTrue(lease.released)

    def test_context_manager_releases(self) -> None:
        worker = FakeWorker([])
        with WorkerLease(worker) as lease:
            self.assertFalse(lease.released)
        self.assertEqual(worker.terminate_calls, 1)

    def test_terminate_error_is_logged_not_raised(self) -> None:
        class Exploding(FakeWorker):
            def terminate(self) -> None:
                raise RuntimeError("already gone")

        with self.assertLogs("pdf_dataset.ocr", level="WARNING"):
            self.assertTrue(WorkerLease(Exploding([])).release())


class TestRecognizePage(unittest.TestCase):
    def test_success_is_nfc_normalized(self) -> None:
        doc = FakeDocument.from_texts(["ignored"])
        outcome = recognize_page(FakeWorker(["Café"]), doc, 1, scale=2.0)
        self.assertEqual(outcome.text, "Café")
        self.assertIsNone(outcome.error)
        self.assertEqual(doc.rendered, [(1, 2.0)])

    def test_recognition_failure_yields_empty_text(self) -> None:
        doc = FakeDocument.from_texts(["x"])
        outcome = recognize_page(FakeWorker([RuntimeError("boom")]), doc, 1)
        self.assertEqual(outcome.text, "")
        self.assertIsInstance(outcome.error, PageRecognitionError)

    def test_render_failure_yields_empty_text(self) -> None:
        doc = FakeDocument.from_texts(["x"], render_errors={1})
        worker = FakeWorker(["never used"])
        outcome = recognize_page(worker, doc, 1)
        self.assertEqual(outcome.text, "")
        self.assertEqual(worker.calls, 0)

    def test_progress_reported_before_recognition(self) -> None:
        events: list[str] = []
        doc = FakeDocument.from_texts(["a", "b"])
        worker = FakeWorker(["a", "b"], on_recognize=lambda n: events.append(f"ocr{n}"))
        recognize_page(worker, doc, 1, progress=lambda p, t: events.append(f"progress{p}/{t}"))
        self.assertEqual(events, ["progress1/2", "ocr1"])

    def test_failing_progress_callback_is_ignored(self) -> None:
        def progress(page: int, total: int) -> None:
            raise ValueError("observer bug")

        doc = FakeDocument.from_texts(["a"])
        outcome = recognize_page(FakeWorker(["text"]), doc, 1, progress=progress)
        self.assertEqual(outcome.text, "text")


class TestRecognizePages(unittest.TestCase):
    def test_one_string_per_page_with_failures_empty(self) -> None:
        doc = FakeDocument.from_texts(["", "", ""])
        worker = FakeWorker(["one", RuntimeError("bad page"), "three"])
        self.assertEqual(recognize_pages(worker, doc), ["one", "", "three"])

    def test_progress_called_once_per_page(self) -> None:
        calls: list[tuple[int, int]] = []
        doc = FakeDocument.from_texts(["", "", ""])
        recognize_pages(FakeWorker(["a", "b", "c"]), doc, progress=lambda p, t: calls.append((p, t)))
        self.assertEqual(calls, [(1, 3), (2, 3), (3, 3)])

    def test_stops_when_run_superseded(self) -> None:
        doc = FakeDocument.from_texts(["", "", ""])
        worker = FakeWorker(["a", "b", "c"])
        with self.assertRaises(RunCancelledError):
            recognize_pages(worker, doc, should_continue=lambda: worker.calls < 1)
        self.assertEqual(worker.calls, 1)

    def test_empty_document(self) -> None:
        self.assertEqual(recognize_pages(FakeWorker([]), FakeDocument([])), [])


class TestTesseractWorker:
    def test_recognize_passes_language_and_tessdata(self, tmp_path):
        worker = TesseractWorker("mya", tmp_path, preprocess=True)
        with patch("pdf_dataset.ocr.pytesseract.image_to_string", return_value="မြန်မာ") as ocr:
            result = worker.recognize(png_bytes())
        assert result.text == "မြန်မာ"
        kwargs = ocr.call_args.kwargs
        assert kwargs["lang"] == "mya"
        assert f'--tessdata-dir "{tmp_path}"' in kwargs["config"]

    def test_terminated_worker_refuses_work(self, tmp_path):
        worker = TesseractWorker("mya", tmp_path)
        worker.terminate()
        assert worker.terminated
        with pytest.raises(PageRecognitionError):
            worker.recognize(png_bytes())

    def test_terminate_keeps_directory_it_does_not_own(self, tmp_path):
        TesseractWorker("mya", tmp_path).terminate()
        assert tmp_path.is_dir()


@pytest.fixture
def tesseract_available():
    with patch("pdf_dataset.ocr.ensure_binaries"), patch(
        "pdf_dataset.ocr.pytesseract.image_to_string", return_value=""
    ):
        yield


@pytest.mark.usefixtures("tesseract_available")
class TestCreateWorker:
    def test_local_directory_used_in_place(self, tmp_path):
        (tmp_path / "mya.traineddata").write_bytes(b"model")
        worker = create_worker("mya", str(tmp_path))
        assert worker.tessdata_dir == tmp_path
        worker.terminate()
        assert (tmp_path / "mya.traineddata").exists()

    def test_local_directory_without_data_fails(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            create_worker("mya", str(tmp_path))

    def test_unloadable_data_fails_init_and_loader_moves_on(self, tmp_path):
        broken, good = tmp_path / "broken", tmp_path / "good"
        for directory, payload in ((broken, b"<html>"), (good, b"model")):
            directory.mkdir()
            (directory / "mya.traineddata").write_bytes(payload)

        def fake_ocr(image, lang, config, **kwargs):
            if str(broken) in config:
                raise pytesseract.TesseractError(1, "Failed loading language 'mya'")
            return ""

        with patch("pdf_dataset.ocr.pytesseract.image_to_string", side_effect=fake_ocr):
            with pytest.raises(MissingDependencyError):
                create_worker("mya", str(broken))
            worker = load_ocr_worker([str(broken), str(good)], "mya")
        assert worker.tessdata_dir == good

    def test_remote_unloadable_data_removed(self, tmp_path):
        target = tmp_path / "download"
        target.mkdir()
        client = httpx.Client(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, content=b"<html>"))
        )
        error = pytesseract.TesseractError(1, "Failed loading language 'mya'")
        with patch("pdf_dataset.ocr.tempfile.mkdtemp", return_value=str(target)), patch(
            "pdf_dataset.ocr.pytesseract.image_to_string", side_effect=error
        ):
            with pytest.raises(MissingDependencyError):
                create_worker("mya", "https://cdn.example/", client=client)
        assert not target.exists()

    def test_remote_gzipped_data_downloaded_and_cleaned_up(self):
        requested: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requested.append(str(request.url))
            if request.url.path.endswith(".traineddata.gz"):
                return httpx.Response(200, content=gzip.compress(b"model-bytes"))
            return httpx.Response(404)

        client = httpx.Client(transport=httpx.MockTransport(handler))
        worker = create_worker("mya", "https://cdn.example/lang-data/", client=client)
        assert requested == ["https://cdn.example/lang-data/mya.traineddata.gz"]
        data_dir = Path(worker.tessdata_dir)
        assert (data_dir / "mya.traineddata").read_bytes() == b"model-bytes"
        worker.terminate()
        assert not data_dir.exists()

    def test_remote_plain_data_used_when_gzip_missing(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith(".traineddata"):
                return httpx.Response(200, content=b"plain-model")
            return httpx.Response(404)

        client = httpx.Client(transport=httpx.MockTransport(handler))
        worker = create_worker("mya", "https://cdn.example/tessdata", client=client)
        try:
            assert (Path(worker.tessdata_dir) / "mya.traineddata").read_bytes() == b"plain-model"
        finally:
            worker.terminate()

    def test_remote_failure_leaves_nothing_behind(self, tmp_path):
        target = tmp_path / "download"
        target.mkdir()
        client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(404)))
        with patch("pdf_dataset.ocr.tempfile.mkdtemp", return_value=str(target)):
            with pytest.raises(OSError):
                create_worker("mya", "https://cdn.example/", client=client)
        assert not target.exists()


if __name__ == "__main__":
    unittest.main()

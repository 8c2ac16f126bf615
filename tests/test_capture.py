import base64
import tempfile
import unittest
import uuid
from pathlib import Path

from core import AppSettings
from core.clock import ONE_DAY_MS, FixedClock
from core.exceptions import InvalidItem
from services.capture import detect_type, item_from_file, new_item, parse_tags


NOW = 1_700_000_000_000


class TestDetectType(unittest.TestCase):

    def test_urls_are_links(self):
        self.assertEqual(detect_type("https://example.com/article"), "link")
        self.assertEqual(detect_type("  http://example.com  "), "link")

    def test_other_text_is_note(self):
        self.assertEqual(detect_type("Remember to read this"), "note")
        self.assertEqual(detect_type("see https://example.com later"), "note")
        self.assertEqual(detect_type("ftp://example.com"), "note")

    def test_parse_tags(self):
        self.assertEqual(parse_tags(" python, ,reading ,"), ("python", "reading"))
        self.assertEqual(parse_tags(""), ())


class TestNewItem(unittest.TestCase):

    def test_new_item_gets_initial_schedule(self):
        """A captured item is scheduled from the settings, not its priority."""
        clock = FixedClock(NOW)
        item = new_item(AppSettings(initial_review_days=2), "note", "Read me",
                        priority=1, tags=["a", "b"], clock=clock)

        uuid.UUID(item.id)
        self.assertEqual(item.added_date, NOW)
        self.assertEqual(item.interval, 2)
        self.assertEqual(item.ease_factor, 2.5)
        self.assertEqual(item.next_review_date, NOW + 2 * ONE_DAY_MS)
        self.assertEqual(item.priority, 1)
        self.assertEqual(item.tags, ("a", "b"))
        self.assertIsNone(item.last_reviewed_date)

    def test_ids_are_unique(self):
        settings = AppSettings()
        ids = {new_item(settings, "note", "x").id for _ in range(20)}
        self.assertEqual(len(ids), 20)

    def test_invalid_priority(self):
        with self.assertRaises(InvalidItem):
            new_item(AppSettings(), "note", "x", priority=9)


class TestItemFromFile(unittest.TestCase):

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.dir = Path(self.temp_dir.name)
        self.clock = FixedClock(NOW)

    def tearDown(self):
        self.temp_dir.cleanup()

    def test_image_becomes_data_url(self):
        path = self.dir / "cat.png"
        path.write_bytes(b"\x89PNG\r\n")

        item = item_from_file(AppSettings(), path, clock=self.clock)

        self.assertEqual(item.type, "image")
        self.assertEqual(item.file_name, "cat.png")
        expected = "data:image/png;base64," + base64.b64encode(b"\x89PNG\r\n").decode("ascii")
        self.assertEqual(item.content, expected)

    def test_pdf_becomes_data_url(self):
        path = self.dir / "paper.pdf"
        path.write_bytes(b"%PDF-1.4")

        item = item_from_file(AppSettings(), path, tags=("papers",), clock=self.clock)

        self.assertEqual(item.type, "pdf")
        self.assertEqual(item.file_name, "paper.pdf")
        self.assertTrue(item.content.startswith("data:application/pdf;base64,"))
        self.assertEqual(item.tags, ("papers",))

    def test_text_file_becomes_note(self):
        path = self.dir / "idea.txt"
        path.write_text("  An idea worth revisiting\n", encoding="utf-8")

        item = item_from_file(AppSettings(), path, clock=self.clock)

        self.assertEqual(item.type, "note")
        self.assertEqual(item.content, "An idea worth revisiting")
        self.assertIsNone(item.file_name)

    def test_missing_file(self):
        with self.assertRaises(FileNotFoundError):
            item_from_file(AppSettings(), self.dir / "nope.png")


if __name__ == "__main__":
    unittest.main()

"""
Test suite for the source download cache
"""
import gzip
import os
import shutil
import tempfile
import unittest
from unittest.mock import MagicMock

import requests

from methylflow.exceptions import SourceUnavailable
from methylflow.tables import SourceFetcher


def mock_session(chunks=None, error=None):
    """A requests session whose get() streams the given chunks"""
    session = MagicMock()
    response = MagicMock()
    response.headers = {"content-length": str(sum(len(c) for c in chunks or []))}
    response.iter_content.return_value = chunks or []
    if error is not None:
        response.raise_for_status.side_effect = error
    session.get.return_value.__enter__.return_value = response
    return session


class TestSourceFetcher(unittest.TestCase):
    """Cached reads and downloads"""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.raw_dir = os.path.join(self.temp_dir, "raw")
        os.makedirs(self.raw_dir)
        self.sources = {
            "umr": {"filename": "umr.tsv", "url": None},
            "dmr": {"filename": "dmr.tsv", "url": "https://example.org/dmr.tsv"},
            "refgene": {"filename": "refGene.txt", "url": "https://example.org/refGene.txt.gz"},
        }

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def test_cached_file_is_reused(self):
        cached = os.path.join(self.raw_dir, "dmr.tsv")
        with open(cached, "w") as f:
            f.write("chr1\t1\t2\n")

        session = mock_session()
        fetcher = SourceFetcher(self.raw_dir, self.sources, session=session)

        self.assertTrue(fetcher.is_cached("dmr"))
        self.assertEqual(str(fetcher.fetch("dmr")), cached)
        session.get.assert_not_called()

    def test_empty_cached_file_is_not_a_cache_hit(self):
        open(os.path.join(self.raw_dir, "dmr.tsv"), "w").close()
        fetcher = SourceFetcher(self.raw_dir, self.sources, session=mock_session([b"x\n"]))
        self.assertFalse(fetcher.is_cached("dmr"))

    def test_missing_url_without_cache(self):
        fetcher = SourceFetcher(self.raw_dir, self.sources, session=mock_session())
        with self.assertRaises(SourceUnavailable) as cm:
            fetcher.fetch("umr")
        self.assertEqual(cm.exception.source_id, "umr")

    def test_undeclared_source(self):
        fetcher = SourceFetcher(self.raw_dir, self.sources, session=mock_session())
        with self.assertRaises(SourceUnavailable):
            fetcher.fetch("zf_peaks")

    def test_download_writes_target(self):
        session = mock_session([b"chr1\t10\t20\n", b"chr2\t30\t40\n"])
        fetcher = SourceFetcher(self.raw_dir, self.sources, session=session)

        path = fetcher.fetch("dmr")

        self.assertEqual(path.read_text(), "chr1\t10\t20\nchr2\t30\t40\n")
        session.get.assert_called_once()
        self.assertEqual(session.get.call_args[0][0], "https://example.org/dmr.tsv")
        self.assertEqual(sorted(os.listdir(self.raw_dir)), ["dmr.tsv"])

    def test_gzipped_download_is_decompressed(self):
        payload = gzip.compress(b"0\tNM_1\tchr1\t+\t100\t200\n")
        fetcher = SourceFetcher(self.raw_dir, self.sources, session=mock_session([payload]))

        path = fetcher.fetch("refgene")

        self.assertEqual(path.name, "refGene.txt")
        self.assertTrue(path.read_text().startswith("0\tNM_1"))
        self.assertEqual(sorted(os.listdir(self.raw_dir)), ["refGene.txt"])

    def test_failed_download_leaves_no_partial_file(self):
        session = mock_session(error=requests.HTTPError("404 Client Error"))
        fetcher = SourceFetcher(self.raw_dir, self.sources, session=session)

        with self.assertRaises(SourceUnavailable) as cm:
            fetcher.fetch("dmr")
        self.assertIn("404", cm.exception.reason)
        self.assertEqual(os.listdir(self.raw_dir), [])

    def test_force_redownloads(self):
        with open(os.path.join(self.raw_dir, "dmr.tsv"), "w") as f:
            f.write("old\n")
        fetcher = SourceFetcher(self.raw_dir, self.sources, session=mock_session([b"new\n"]))

        path = fetcher.fetch("dmr", force=True)
        self.assertEqual(path.read_text(), "new\n")

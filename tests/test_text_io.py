"""Tests for clinician note decoding, loading and header parsing."""

from __future__ import annotations

import pytest

from app.common.exceptions import UploadRejectedError
from app.common.text_io import (
    clean_note,
    decode_note,
    is_note_filename,
    iter_labelled_lines,
    load_note,
)

EXPORTED_NOTE = """===== CLINICAL NOTE =====
Patient: Jane Doe
NPI: 1234567890



Procedure: shave biopsy
-----
"""


# =============================================================================
# Decoding uploads
# =============================================================================


class TestDecodeNote:
    def test_bom_and_crlf_are_normalized(self):
        raw = "\ufeffPatient: Jane Doe\r\nNPI: 1234567890\r\n".encode("utf-8")
        assert decode_note(raw) == "Patient: Jane Doe\nNPI: 1234567890\n"

    def test_invalid_utf8_is_rejected(self):
        with pytest.raises(UploadRejectedError) as excinfo:
            decode_note(b"\xff\xfe\x00bad")
        assert excinfo.value.code == "INVALID_FILE_ENCODING"

    def test_note_filename(self):
        assert is_note_filename("Visit.TXT") is True
        assert is_note_filename("visit.pdf") is False


# =============================================================================
# Loading and cleaning
# =============================================================================


class TestLoadNote:
    def test_banners_and_blank_runs_removed(self):
        assert clean_note(EXPORTED_NOTE) == (
            "Patient: Jane Doe\nNPI: 1234567890\n\nProcedure: shave biopsy"
        )

    def test_loads_txt_path_given_as_string(self, tmp_path):
        path = tmp_path / "visit.txt"
        path.write_bytes(EXPORTED_NOTE.replace("\n", "\r\n").encode("utf-8"))

        assert load_note(str(path)).startswith("Patient: Jane Doe\nNPI")
        assert load_note(path) == load_note(str(path))

    def test_raw_text_is_used_as_is(self, tmp_path):
        missing = str(tmp_path / "missing.txt")
        assert load_note(missing) == missing
        assert load_note("Procedure: cryotherapy") == "Procedure: cryotherapy"


# =============================================================================
# Header parsing
# =============================================================================


class TestLabelledLines:
    def test_labels_are_lower_cased(self, sample_note):
        fields = dict(iter_labelled_lines(sample_note))

        assert fields["patient"] == "Jane Doe"
        assert fields["date of service"] == "2026-03-02"
        assert fields["lesions"] == "3"

    def test_prose_lines_are_ignored(self):
        assert list(iter_labelled_lines("Three lesions treated with liquid nitrogen.")) == []

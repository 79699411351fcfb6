"""
Unit tests for ErrorCode contract.

Ensures all ErrorCode values used in the codebase actually exist in the
enum. Prevents runtime crashes from typos or missing codes.

Run: python -m pytest tests/unit/test_error_codes.py -v
"""

import re
import unittest
from pathlib import Path
from typing import Set

from core.exceptions import ErrorCode

PROJECT_ROOT = Path(__file__).parent.parent.parent


class TestErrorCodeContract(unittest.TestCase):
    """Test that all ErrorCode usages in codebase are valid."""

    SCAN_PATTERNS = [
        "chains/**/*.py",
        "config/**/*.py",
        "core/**/*.py",
        "dex/**/*.py",
        "execution/**/*.py",
        "integrations/**/*.py",
        "quoting/**/*.py",
        "splitter/**/*.py",
        "run_backrun.py",
        "tests/**/*.py",
    ]

    def find_errorcode_usages(self, filepath: Path) -> Set[str]:
        """Find all ErrorCode.<MEMBER> usages in a file."""
        content = filepath.read_text(encoding="utf-8")
        return set(re.findall(r"ErrorCode\.([A-Z_0-9]+)", content))

    def test_all_errorcode_enum_usages_exist(self):
        """Verify all ErrorCode.<MEMBER> usages reference valid enum members."""
        valid_names = {code.name for code in ErrorCode}

        all_usages = set()
        files_scanned = 0

        for pattern in self.SCAN_PATTERNS:
            for filepath in PROJECT_ROOT.glob(pattern):
                if "__pycache__" in str(filepath):
                    continue
                all_usages.update(self.find_errorcode_usages(filepath))
                files_scanned += 1

        invalid_usages = all_usages - valid_names
        self.assertEqual(
            invalid_usages,
            set(),
            f"Invalid ErrorCode usages found: {invalid_usages}\n"
            f"Valid codes: {sorted(valid_names)}"
        )
        self.assertGreater(files_scanned, 0, "No files scanned!")

    def test_no_duplicate_error_code_values(self):
        values = [code.value for code in ErrorCode]
        duplicates = [v for v in values if values.count(v) > 1]
        self.assertEqual(duplicates, [], f"Duplicate ErrorCode values: {set(duplicates)}")

    def test_errorcode_values_are_upper_snake_case(self):
        for code in ErrorCode:
            self.assertEqual(code.name, code.value)
            self.assertRegex(code.value, r"^[A-Z][A-Z0-9_]+$")


class TestErrorCodeCompleteness(unittest.TestCase):
    """ErrorCode carries every revert reason the engine raises."""

    def _codes(self) -> Set[str]:
        return {code.value for code in ErrorCode}

    def test_has_callback_codes(self):
        for name in (
            "CALLBACK_NO_EXECUTION",
            "CALLBACK_ROUTE_MISMATCH",
            "CALLBACK_HOP_MISMATCH",
            "CALLBACK_UNEXPECTED_CALLER",
            "CALLBACK_KIND_MISMATCH",
            "CALLBACK_OVERPAYMENT",
            "CALLBACK_UNKNOWN_SELECTOR",
        ):
            self.assertIn(name, self._codes())

    def test_has_share_table_codes(self):
        codes = self._codes()
        for name in ("SHARES_EMPTY", "SHARES_DUPLICATE", "SHARES_INVALID_TOTAL"):
            self.assertIn(name, codes)

    def test_has_quote_and_infra_codes(self):
        codes = self._codes()
        for name in ("QUOTE_REVERT", "QUOTE_MALFORMED", "INFRA_RPC_ERROR", "INFRA_TIMEOUT"):
            self.assertIn(name, codes)


if __name__ == "__main__":
    unittest.main()

"""
Tests for scripts/search_handbook.py.
Run with: python -m pytest tests/test_search_cli.py -v
"""

import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from scripts import search_handbook  # noqa: E402


class TestSearchHandbookCLI:

    def test_search_prints_ranked_passages(self, capsys):
        assert search_handbook.main(["補考 規定"]) == 0
        out = capsys.readouterr().out
        assert "Terms: ['補考', '規定']" in out
        assert " 1. " in out
        assert out.index("課程規章規定") < out.index("補考機會")

    def test_no_results(self, capsys):
        search_handbook.main(["weather"])
        assert "No passages scored" in capsys.readouterr().out

    def test_fallback_flag(self, capsys):
        search_handbook.main(["補考規定", "--fallback"])
        assert "## 📚 補考規定" in capsys.readouterr().out

    def test_list_sections(self, capsys):
        assert search_handbook.main(["--sections"]) == 0
        out = capsys.readouterr().out
        assert "評估或考核 (7 passages)" in out
        assert "附錄 (3 passages)" in out

    def test_show_section(self, capsys):
        assert search_handbook.main(["--section", "收費"]) == 0
        out = capsys.readouterr().out
        assert "收費與雜項" in out
        assert "  - 學費需在每學期開始前繳納。" in out

    def test_unknown_section(self, capsys):
        assert search_handbook.main(["--section", "不存在"]) == 1

    def test_query_required(self):
        with pytest.raises(SystemExit):
            search_handbook.main([])

"""表格渲染测试"""

from skillsync.sync import parse_table_rows, render_table


class TestRenderTable:
    def test_empty(self):
        assert render_table([]) == "| Action | Skill |\n|--------|-------|\n"

    def test_aligned_rows(self):
        table = render_table([
            ("adding pytest support", "pytest"),
            ("Creating a viewset", "django-drf"),
        ])
        assert table == (
            "| Action                | Skill        |\n"
            "|-----------------------|--------------|\n"
            "| adding pytest support | `pytest`     |\n"
            "| Creating a viewset    | `django-drf` |\n"
        )

    def test_order_independent(self):
        rows = [("b", "x"), ("A", "y"), ("c", "z")]
        assert render_table(rows) == render_table(list(reversed(rows)))

    def test_sorted_case_insensitively(self):
        lines = render_table([("beta", "b"), ("Alpha", "a"), ("gamma", "c")]).splitlines()
        assert [line.split("|")[1].strip() for line in lines[2:]] == ["Alpha", "beta", "gamma"]

    def test_pipe_escaped(self):
        table = render_table([("a | b", "pipes")])
        assert "| a \\| b | `pipes` |" in table

    def test_pipe_in_skill_id_escaped(self):
        table = render_table([("do thing", "a|b")])
        assert "| do thing | `a\\|b` |" in table
        assert table.splitlines()[2].count("|") - table.splitlines()[2].count("\\|") == 3

    def test_every_line_ends_with_newline(self):
        table = render_table([("x", "y")])
        assert table.endswith("\n")
        assert "\n\n" not in table


class TestParseTableRows:
    def test_reads_back_rendered_rows(self):
        rows = [("a | b", "pipes"), ("do thing", "a|b"), ("styling", "tailwind")]
        assert parse_table_rows(render_table(rows)) == rows

    def test_empty_table(self):
        assert parse_table_rows(render_table([])) == []

    def test_hand_written_table(self):
        text = "|Action|Skill|\n|:---|---:|\n|deploying|deploy|\n\nTrailing prose\n| not | a row |\n"
        assert parse_table_rows(text) == [("deploying", "deploy")]

    def test_no_separator(self):
        assert parse_table_rows("| just | a header |\n") == []

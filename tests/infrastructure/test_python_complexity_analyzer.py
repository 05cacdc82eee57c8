import ast
import textwrap

import pytest

from git_riskflow.domain.errors import SourceParseError
from git_riskflow.infrastructure.python_complexity_analyzer import analyze_python_source


def _analyze(source: str):
    return analyze_python_source(textwrap.dedent(source), "pkg/mod.py")


def _cc(source: str, name: str = "f") -> int:
    """Helper: parse source, return the complexity of *name*."""
    funcs = {r.qualified_name: r for r in _analyze(source)}
    assert name in funcs, f"{name} not found in {list(funcs)}"
    return funcs[name].complexity


class TestCyclomaticComplexity:
    def test_no_branches_is_one(self):
        assert _cc("""\
            def f():
                return 42
        """) == 1

    def test_single_if(self):
        assert _cc("""\
            def f(x):
                if x:
                    return 1
                return 0
        """) == 2

    def test_if_elif_else(self):
        assert _cc("""\
            def f(x):
                if x > 0:
                    return 1
                elif x < 0:
                    return -1
                else:
                    return 0
        """) == 3

    def test_boolean_operator_in_condition(self):
        assert _cc("""\
            def f(a, b):
                if a and b:
                    return 1
                return 0
        """) == 3

    def test_chained_boolean_operators(self):
        # a and b and c is one BoolOp with three values
        assert _cc("""\
            def f(a, b, c):
                if a and b and c:
                    return 1
        """) == 4

    def test_mixed_boolean_operators_outside_conditions(self):
        assert _cc("""\
            def f(a, b, c):
                return a and b or c
        """) == 3

    def test_loops(self):
        assert _cc("""\
            def f(xs):
                for x in xs:
                    pass
                while xs:
                    xs.pop()
        """) == 3

    def test_async_for_and_with(self):
        assert _cc("""\
            async def f(stream, lock):
                async with lock:
                    async for item in stream:
                        pass
        """) == 2

    def test_except_handlers_count_finally_does_not(self):
        assert _cc("""\
            def f():
                try:
                    pass
                except ValueError:
                    pass
                except KeyError:
                    pass
                finally:
                    pass
        """) == 3

    def test_ternary(self):
        assert _cc("""\
            def f(x):
                return 1 if x else 0
        """) == 2

    def test_comprehension_with_filter(self):
        # one for the generator, one for the filter
        assert _cc("""\
            def f(xs):
                return [x for x in xs if x]
        """) == 3

    def test_with_and_assert_add_nothing(self):
        assert _cc("""\
            def f(path):
                assert path
                with open(path) as fh:
                    return fh.read()
        """) == 1

    def test_match_cases_exclude_catch_all(self):
        assert _cc("""\
            def f(x):
                match x:
                    case 1:
                        return "one"
                    case 2:
                        return "two"
                    case _:
                        return "many"
        """) == 3

    def test_guarded_wildcard_counts(self):
        assert _cc("""\
            def f(x, y):
                match x:
                    case _ if y:
                        return 1
        """) == 2

    def test_walrus_adds_nothing(self):
        assert _cc("""\
            def f(x):
                if (n := len(x)) > 3:
                    return n
                return 0
        """) == 2

    def test_lambda_branches_count_toward_enclosing(self):
        assert _cc("""\
            def f(xs):
                key = lambda x: 0 if x is None else x
                return sorted(xs, key=key)
        """) == 2


class TestUnits:
    def test_nested_function_is_separate_unit(self):
        records = _analyze("""\
            def outer(x):
                if x:
                    pass
                def inner(ys):
                    for y in ys:
                        if y:
                            pass
                return inner
        """)
        by_name = {r.qualified_name: r.complexity for r in records}
        assert by_name == {"outer": 2, "outer.inner": 3}

    def test_methods_are_qualified_by_class(self):
        records = _analyze("""\
            class Outer:
                def run(self):
                    pass

                class Inner:
                    def run(self):
                        pass
        """)
        assert [r.qualified_name for r in records] == ["Outer.run", "Outer.Inner.run"]

    def test_duplicate_names_get_suffix(self):
        records = _analyze("""\
            class C:
                @property
                def value(self):
                    return 1

                @value.setter
                def value(self, v):
                    pass
        """)
        assert [r.qualified_name for r in records] == ["C.value", "C.value#2"]

    def test_function_under_module_level_if(self):
        records = _analyze("""\
            import sys

            if sys.platform == "win32":
                def helper():
                    pass
            else:
                def helper():
                    pass
        """)
        assert [r.qualified_name for r in records] == ["helper", "helper#2"]

    def test_suffixes_follow_source_order_through_try(self):
        records = _analyze("""\
            try:
                import json
            except ImportError:
                def compat():
                    pass
            else:
                def compat():
                    pass
            finally:
                def compat():
                    pass
        """)
        assert [(r.start_line, r.qualified_name) for r in records] == [
            (4, "compat"), (7, "compat#2"), (10, "compat#3"),
        ]

    def test_module_level_code_is_not_a_unit(self):
        assert _analyze("""\
            X = 1 if True else 2
            for i in range(3):
                pass
        """) == []

    def test_record_fields(self):
        (record,) = _analyze("""\
            # comment

            def f(x):
                if x:
                    return 1
                return 0
        """)
        assert record.file_path == "pkg/mod.py"
        assert record.start_line == 3
        assert record.end_line == 6
        assert record.language == "python"
        assert record.function_id == "pkg/mod.py::f"

    def test_sorted_by_start_line(self):
        records = _analyze("""\
            def b():
                pass

            def a():
                pass
        """)
        assert [r.qualified_name for r in records] == ["b", "a"]

    def test_every_complexity_at_least_one(self):
        records = _analyze("""\
            class A:
                def m(self):
                    pass

            def g():
                def h():
                    pass
        """)
        assert records
        assert all(r.complexity >= 1 for r in records)


class TestParseErrors:
    def test_syntax_error_raises(self):
        with pytest.raises(SourceParseError) as exc_info:
            analyze_python_source("def f(:\n    pass\n", "bad.py")
        assert exc_info.value.file_path == "bad.py"

    def test_null_byte_raises(self):
        with pytest.raises(SourceParseError):
            analyze_python_source("x = 1\0\n", "bad.py")

    def test_empty_source_has_no_functions(self):
        assert analyze_python_source("", "empty.py") == []

    def test_too_deeply_nested_raises(self, monkeypatch):
        def overflow(*args, **kwargs):
            raise RecursionError("maximum recursion depth exceeded during ast construction")

        monkeypatch.setattr(ast, "parse", overflow)
        with pytest.raises(SourceParseError) as exc_info:
            analyze_python_source("def f(x):\n    return x\n", "deep.py")
        assert "too deeply nested" in exc_info.value.reason


class TestSuppression:
    def test_reason_on_line_above(self):
        (record,) = _analyze("""\
            # riskflow-ignore: generated lookup table
            def f(x):
                return x
        """)
        assert record.suppression_reason == "generated lookup table"

    def test_comment_above_decorators(self):
        (record,) = _analyze("""\
            import functools

            # riskflow-ignore: cached dispatcher
            @functools.lru_cache
            def f(x):
                return x
        """)
        assert record.suppression_reason == "cached dispatcher"

    def test_marker_without_reason(self):
        (record,) = _analyze("""\
            # riskflow-ignore
            def f():
                pass
        """)
        assert record.suppression_reason == ""

    def test_method_in_class(self):
        records = _analyze("""\
            class C:
                # riskflow-ignore: legacy
                def old(self):
                    pass

                def new(self):
                    pass
        """)
        assert {r.qualified_name: r.suppression_reason for r in records} == {
            "C.old": "legacy", "C.new": None,
        }

    def test_blank_line_breaks_association(self):
        (record,) = _analyze("""\
            # riskflow-ignore: too far away

            def f():
                pass
        """)
        assert record.suppression_reason is None

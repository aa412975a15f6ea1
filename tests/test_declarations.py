"""
Tests for the selectable list and the declaration/signature models.
"""

from hypothesis import given
from hypothesis import strategies as st

from cellsense.core.declarations import DeclarationItem, DeclarationModel, SignatureModel, escape_value
from cellsense.core.positions import Position
from cellsense.core.selectable_list import BoundaryPolicy, SelectableList
from cellsense.editor import TextCell

name_strategy = st.text(alphabet="abcXYZ_. ", min_size=1, max_size=8)
filter_strategy = st.text(alphabet="abcxyz", max_size=3)
deltas_strategy = st.lists(st.integers(min_value=-12, max_value=12), max_size=20)


def items(*names):
    return [DeclarationItem(name=name) for name in names]


def open_model(names, anchor=Position(0, 0), **options):
    model = DeclarationModel(**options)
    model.set_anchor(anchor)
    model.set_candidates(items(*names))
    return model


class TestSelectableList:
    def test_clamp_policy_stays_in_bounds(self):
        lst = SelectableList(BoundaryPolicy.CLAMP, ["a", "b", "c"])
        assert lst.move(-3) == 0
        assert lst.move(10) == 2

    def test_wrap_policy_wraps(self):
        lst = SelectableList(BoundaryPolicy.WRAP, ["a", "b", "c"])
        assert lst.move(-1) == 2
        assert lst.move(1) == 0

    def test_empty_list_has_no_selection(self):
        lst = SelectableList(BoundaryPolicy.WRAP)
        assert lst.move(3) == 0
        assert lst.selected() is None

    def test_set_items_can_keep_selection(self):
        lst = SelectableList(BoundaryPolicy.CLAMP, ["a", "b", "c"])
        lst.select(2)
        lst.set_items(["x", "y"], keep_selection=True)
        assert lst.selected_index == 1
        lst.set_items(["p", "q"])
        assert lst.selected_index == 0


class TestFilteringProperties:
    @given(names=st.lists(name_strategy, max_size=12), text=filter_strategy)
    def test_prefix_filter_is_the_startswith_subset(self, names, text):
        model = DeclarationModel()
        model.set_filter(text)
        model.set_candidates(items(*names))
        expected = [name for name in names if name.lower().startswith(text.lower())]
        assert [item.name for item in model.filtered()] == expected
        assert model.visible == bool(expected)

    @given(names=st.lists(name_strategy, max_size=12), text=filter_strategy)
    def test_contains_filter_is_the_substring_subset(self, names, text):
        model = DeclarationModel(filter_mode="contains")
        model.set_candidates(items(*names))
        model.set_filter(text)
        expected = [name for name in names if text.lower() in name.lower()]
        assert [item.name for item in model.filtered()] == expected

    @given(names=st.lists(name_strategy, min_size=1, max_size=12), deltas=deltas_strategy)
    def test_declaration_move_never_leaves_bounds(self, names, deltas):
        model = open_model(names)
        for delta in deltas:
            index = model.move(delta)
            assert 0 <= index <= len(names) - 1

    @given(count=st.integers(min_value=1, max_value=6), deltas=deltas_strategy)
    def test_signature_move_wraps_modulo_length(self, count, deltas):
        model = SignatureModel()
        model.set_signatures([f"f{i}()" for i in range(count)])
        for delta in deltas:
            model.move(delta)
        assert model.selected_index == sum(deltas) % count


class TestDeclarationModel:
    def test_map_mapi_max_walkthrough(self):
        cell = TextCell("ma", cursor=Position(0, 2))
        model = open_model(["map", "mapi", "max"])
        model.set_filter(model.filter_text_from(cell))
        assert [item.name for item in model.filtered()] == ["map", "mapi", "max"]

        cell.type_text("p")
        model.set_filter(model.filter_text_from(cell))
        assert [item.name for item in model.filtered()] == ["map", "mapi"]
        assert model.selected_index == 0

        assert model.commit(cell) == "map"
        assert cell.text() == "map"
        assert cell.cursor() == Position(0, 3)
        assert model.visible is False

    def test_changed_filter_resets_selection(self):
        model = open_model(["map", "mapi", "max"])
        model.move(2)
        model.set_filter("ma")
        assert model.selected_index == 0

    def test_unchanged_filter_keeps_selection(self):
        model = open_model(["map", "mapi", "max"])
        model.set_filter("ma")
        model.move(1)
        model.set_filter("ma")
        assert model.selected_index == 1

    def test_empty_view_closes_the_popup(self):
        model = open_model(["map", "max"])
        model.set_filter("zz")
        assert model.filtered() == []
        assert model.visible is False

    def test_empty_candidates_do_not_open(self):
        model = DeclarationModel()
        model.set_candidates([])
        assert model.visible is False

    def test_callable_filter_mode(self):
        model = DeclarationModel(filter_mode=lambda item, text: item.name.endswith(text))
        model.set_candidates(items("map", "mapi", "max"))
        model.set_filter("x")
        assert [item.name for item in model.filtered()] == ["max"]

    def test_commit_escapes_names_with_delimiters(self):
        cell = TextCell("x.", cursor=Position(0, 2))
        model = open_model(["my value"], anchor=Position(0, 2))
        assert model.commit(cell) == "``my value``"
        assert cell.text() == "x.``my value``"
        assert cell.cursor() == Position(0, 14)

    def test_commit_inserts_value_not_name(self):
        cell = TextCell("xs.", cursor=Position(0, 3))
        model = DeclarationModel()
        model.set_anchor(Position(0, 3))
        model.set_candidates([DeclarationItem(name="Length", value="Length()")])
        assert model.commit(cell) == "Length()"
        assert cell.text() == "xs.Length()"

    def test_commit_skips_escaping_on_directive_lines(self):
        cell = TextCell('#load "./sc', cursor=Position(0, 11))
        model = open_model(["./scripts/a.fsx"], anchor=Position(0, 7))
        assert model.commit(cell) == "./scripts/a.fsx"
        assert cell.text() == '#load "./scripts/a.fsx'
        assert cell.cursor() == Position(0, 22)

    def test_commit_when_closed_is_a_no_op(self):
        cell = TextCell("x.", cursor=Position(0, 2))
        model = open_model(["map"], anchor=Position(0, 2))
        model.close()
        assert model.commit(cell) is None
        assert cell.text() == "x."

    def test_filter_text_requires_cursor_on_anchor_span(self):
        cell = TextCell("xs.ma\nnext", cursor=Position(0, 5))
        model = open_model(["map"], anchor=Position(0, 3))
        assert model.filter_text_from(cell) == "ma"
        cell.set_cursor(Position(0, 2))
        assert model.filter_text_from(cell) is None
        cell.set_cursor(Position(1, 4))
        assert model.filter_text_from(cell) is None

    def test_state_snapshot(self):
        model = open_model(["map", "mapi"], anchor=Position(2, 4))
        model.set_filter("ma")
        model.move(1)
        state = model.state()
        assert state.anchor == Position(2, 4)
        assert state.text == "ma"
        assert state.selected_index == 1


class TestDeclarationItem:
    def test_from_bare_string(self):
        item = DeclarationItem.from_match("abs")
        assert item.name == "abs"
        assert item.value == "abs"

    def test_from_dict_with_either_key_case(self):
        item = DeclarationItem.from_match({"Name": "Foo", "Value": "foo()", "Glyph": 3, "Documentation": "doc"})
        assert (item.name, item.value, item.glyph, item.documentation) == ("Foo", "foo()", 3, "doc")
        lower = DeclarationItem.from_match({"name": "bar", "glyph": "x"})
        assert (lower.value, lower.glyph, lower.documentation) == ("bar", 0, None)

    def test_rejects_unusable_matches(self):
        assert DeclarationItem.from_match({"name": ""}) is None
        assert DeclarationItem.from_match("") is None
        assert DeclarationItem.from_match(42) is None

    def test_escape_value(self):
        assert escape_value("plain") == "plain"
        assert escape_value("a.b") == "``a.b``"
        assert escape_value("a[0]") == "``a[0]``"
        assert escape_value("a b", delimiters=("-",)) == "a b"
        assert escape_value("a b", template="'{}'") == "'a b'"


class TestSignatureModel:
    def test_position_text(self):
        model = SignatureModel()
        model.set_signatures(["f(x)", "f(x, y)", "f(x, y, z)"])
        assert model.visible is True
        assert model.position_text() == "1 of 3"
        model.move(1)
        assert model.position_text() == "2 of 3"
        assert model.selected() == "f(x, y)"

    def test_empty_signatures_do_not_open(self):
        model = SignatureModel()
        model.set_signatures([])
        assert model.visible is False
        assert model.position_text() == ""

    def test_close(self):
        model = SignatureModel()
        model.set_signatures(["f()"])
        model.close()
        assert model.visible is False

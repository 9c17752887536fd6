import random
from pathlib import Path

import pytest

pytest.importorskip("tree_sitter_language_pack")

from module_splitter.config import LOADER_REGION
from module_splitter.extract import ExtractionPlan, plan_extractions
from module_splitter.locator import locate_functions
from module_splitter.rewrite import (
    apply_rewrite,
    build_rewrite_plan,
    collapse_blank_lines,
    find_publish_directives,
    remove_spans,
    render_loader,
    string_literal_rows,
    strip_loader_block,
)
from module_splitter.ts_utils import parse_source


def _remove_tracking_offsets(data: bytes, spans):
    """Ascending removal that shifts every later span by what was already removed."""
    out = bytearray(data)
    shift = 0
    for start, end in sorted(spans):
        del out[start - shift:end - shift]
        shift += end - start
    return bytes(out)


def _remove_by_mask(data: bytes, spans):
    drop = set()
    for start, end in spans:
        drop.update(range(start, end))
    return bytes(b for i, b in enumerate(data) if i not in drop)


def _random_spans(rng: random.Random, size: int):
    count = rng.randint(0, min(8, size // 2))
    points = sorted(rng.sample(range(size + 1), count * 2))
    spans = list(zip(points[0::2], points[1::2]))
    rng.shuffle(spans)
    return spans


@pytest.mark.parametrize("seed", range(50))
def test_descending_removal_matches_offset_tracking(seed):
    rng = random.Random(seed)
    data = bytes(rng.randrange(32, 127) for _ in range(rng.randint(0, 200)))
    spans = _random_spans(rng, len(data))
    expected = _remove_tracking_offsets(data, spans)
    assert remove_spans(data, spans) == expected
    assert remove_spans(data, spans) == _remove_by_mask(data, spans)


def test_remove_spans_rejects_overlap_and_out_of_range():
    with pytest.raises(ValueError):
        remove_spans(b"0123456789", [(1, 5), (4, 8)])
    with pytest.raises(ValueError):
        remove_spans(b"0123", [(2, 9)])


def test_adjacent_spans_are_fine():
    assert remove_spans(b"aaBBccDD", [(2, 4), (4, 6)]) == b"aaDD"


def test_collapse_blank_lines():
    assert collapse_blank_lines("a\n\n\n\nb\n") == "a\n\nb"
    assert collapse_blank_lines("a\n\nb") == "a\n\nb"
    assert collapse_blank_lines("a\n  \n\t\n\nb   \n\n") == "a\n\nb"
    assert collapse_blank_lines("\n\n$x = 1") == "$x = 1"
    assert collapse_blank_lines("a\r\n\r\n\r\n\r\nb\r\n") == "a\r\n\r\nb"
    assert collapse_blank_lines("\n \n") == ""


def test_collapse_keeps_protected_rows():
    text = "$a = @\"\nTop\n\n\n\nBottom\n\"@\n\n\n\n$b = 1"
    # rows 1-6 are here-string content
    assert collapse_blank_lines(text, frozenset(range(1, 7))) == (
        "$a = @\"\nTop\n\n\n\nBottom\n\"@\n\n$b = 1"
    )


def test_loader_includes_private_before_public_and_exports_public():
    loader = render_loader("Public", "Private", ".ps1")
    assert loader.startswith(f"#region {LOADER_REGION}\n")
    assert loader.endswith("#endregion\n")
    assert loader.index("'Private'") < loader.index("'Public'")
    assert "@($Private + $Public)" in loader
    assert ". $Import.FullName" in loader
    assert "-Filter '*.ps1'" in loader
    assert "Export-ModuleMember -Function $Public.BaseName" in loader


def test_loader_quotes_directory_names_and_keeps_newline_style():
    loader = render_loader("Pub'lic", "Private", ".ps1", newline="\r\n")
    assert "'Pub''lic'" in loader
    assert "\r\n" in loader and "\n" not in loader.replace("\r\n", "")


def test_loader_block_itself_has_no_callables():
    assert locate_functions(parse_source(render_loader("Public", "Private"))) == []


def test_strip_loader_block():
    text = "$x = 1\n\n" + render_loader("Public", "Private") + "\n# tail\n"
    stripped, found = strip_loader_block(text)
    assert found
    assert LOADER_REGION not in stripped
    assert "$x = 1" in stripped and "# tail" in stripped
    assert strip_loader_block("$x = 1\n") == ("$x = 1\n", False)


def test_find_publish_directives():
    text = "Set-StrictMode -Version Latest\nexport-modulemember -Function Get-Widget\n"
    assert find_publish_directives(text) == [2]
    assert find_publish_directives("# Export-ModuleMember is handled by the loader\n$x = 1\n") == []
    assert find_publish_directives("$x = 1\n") == []
    qualified = "$x = 1\nMicrosoft.PowerShell.Core\\Export-ModuleMember -Function Get-A\n"
    assert find_publish_directives(qualified) == [2]


def _rewrite(code: str):
    doc = parse_source(code)
    plan = plan_extractions(locate_functions(doc), Path("/m/Public"), exists=lambda p: False)
    rplan = build_rewrite_plan(plan, render_loader("Public", "Private"))
    return doc, rplan, apply_rewrite(doc, rplan)


MODULE = """\
Set-StrictMode -Version Latest
$script:Cache = @{}

function Get-A { 'a' }



# comment between functions
function Get-B {
    param($x)
    function Nested { $x }
    Nested
}
filter Get-C { $_ }
$script:Ready = $true
"""


def test_rewrite_plan_is_descending_by_offset():
    _doc, rplan, _result = _rewrite(MODULE)
    starts = [f.start_byte for f in rplan.spans]
    assert starts == sorted(starts, reverse=True)
    assert [f.name for f in rplan.spans] == ["Get-C", "Get-B", "Get-A"]


def test_rewrite_plan_requires_no_skips():
    doc = parse_source(MODULE)
    fns = locate_functions(doc)
    plan = plan_extractions(fns, Path("/m/Public"), exists=lambda p: p.name == "Get-B.ps1")
    with pytest.raises(ValueError):
        build_rewrite_plan(plan, "")
    with pytest.raises(ValueError):
        build_rewrite_plan(ExtractionPlan(plan.skips), "")


def test_round_trip_keeps_every_callable_exactly_once():
    doc, rplan, result = _rewrite(MODULE)
    loader = rplan.loader
    assert result.text.endswith(loader)
    leftover = result.text[: -len(loader)]

    # rebuild: leftover text plus callables in document order gives back the original
    pieces, cursor = [], 0
    for fn in sorted(rplan.spans, key=lambda f: f.start_byte):
        pieces.append(doc.source_bytes[cursor:fn.start_byte].decode("utf-8"))
        cursor = fn.end_byte
    pieces.append(doc.source_bytes[cursor:].decode("utf-8"))
    assert "".join(pieces).split() == leftover.split()

    for fn in rplan.spans:
        assert fn.text not in leftover
        assert MODULE.count(fn.text) == 1
    assert "function Nested" not in leftover
    assert leftover.startswith("Set-StrictMode -Version Latest\n$script:Cache = @{}\n")
    assert "\n\n\n\n" not in leftover
    assert not result.directive_lines


def test_leftover_export_is_warned_not_merged():
    code = "function Get-A { 'a' }\nExport-ModuleMember -Function Get-A\n"
    _doc, rplan, result = _rewrite(code)
    assert result.directive_lines == [1]
    assert len(result.warnings) == 1
    assert result.text == "Export-ModuleMember -Function Get-A\n\n" + rplan.loader


def test_previous_loader_is_replaced_not_stacked():
    code = "$x = 1\n\n" + render_loader("Public", "Private") + "\nfunction Get-New { 1 }\n"
    _doc, rplan, result = _rewrite(code)
    assert result.replaced_loader
    assert result.text.count(f"#region {LOADER_REGION}") == 1
    assert result.text == "$x = 1\n\n" + rplan.loader
    assert not result.directive_lines


HERE_STRING_MODULE = '$Banner = @"\nTop\n\n\n\nBottom\n"@\nfunction A { 1 }\n'


def test_here_string_rows_are_detected():
    rows = string_literal_rows('$Banner = @"\nTop\n\n\n\nBottom\n"@\n$x = 1\n')
    assert {2, 3, 4} <= rows
    assert 0 not in rows and 7 not in rows


def test_blank_lines_inside_here_string_survive_rewrite():
    _doc, rplan, result = _rewrite(HERE_STRING_MODULE)
    assert result.text == '$Banner = @"\nTop\n\n\n\nBottom\n"@\n\n' + rplan.loader

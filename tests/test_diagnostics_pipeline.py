from __future__ import annotations

from pathlib import Path

import pytest

from diagnostics import (
    ErrorCollapser,
    ErrorFilter,
    ErrorToSourceFileMapper,
    ErrorTransformer,
    RawDiagnostic,
    RenderPoint,
    ResolvedDiagnostic,
    SourceChain,
    SourceLocation,
    build_render_point_table,
)
from diagnostics.transformer import transform_message
from discovery import UnableToCanonicalizeTemplate
from flattening import FlattenedUnit, FlatteningResultCollection
from injection import ScopeInjectedUnit, ScopeInjectionResultCollection
from rules import DEFAULT_IGNORE_RULES, IgnoreRule
from typecheck.results import RenderCall

LAYOUT = Path("/site/templates/layout.html")
PAGE = Path("/site/templates/page.html")
VIEWS = Path("/site/app/views.py")
PAGE_UNIT = Path("/scratch/scope-injection/page_html_0000.py")


class _Canonicalizer:
    """Resolves bare names under /site/templates."""

    def canonicalize(self, reference: str) -> Path:
        if reference.startswith("/"):
            return Path(reference)
        if reference in {"layout.html", "page.html"}:
            return Path("/site/templates") / reference
        raise UnableToCanonicalizeTemplate(reference, "template not found")


def _injected(source_map: dict[int, SourceChain]) -> ScopeInjectionResultCollection:
    units = ScopeInjectionResultCollection()
    units.add(
        ScopeInjectedUnit(
            template=PAGE,
            python_file=PAGE_UNIT,
            source="",
            source_map=source_map,
            declarations={},
        )
    )
    return units


def _resolved(
    message: str,
    chain: SourceChain | None,
    *,
    identifier: str | None = "attr-defined",
    points: tuple[RenderPoint, ...] = (),
    can_be_suppressed: bool = True,
) -> ResolvedDiagnostic:
    return ResolvedDiagnostic(
        message=message,
        identifier=identifier,
        python_file=PAGE_UNIT,
        python_line=20,
        chain=chain,
        render_points=points,
        can_be_suppressed=can_be_suppressed,
    )


def test_source_chain_wrapping() -> None:
    inner = SourceChain.of(SourceLocation(LAYOUT, 3))
    outer = SourceChain.of(SourceLocation(PAGE, 1), SourceLocation(PAGE, 7))

    chain = inner.within(outer)

    assert list(chain) == [SourceLocation(PAGE, 1), SourceLocation(PAGE, 7), SourceLocation(LAYOUT, 3)]
    assert chain.last == SourceLocation(LAYOUT, 3)
    assert len(chain) == 3
    assert list(inner) == [SourceLocation(LAYOUT, 3)]
    assert chain.to_string(Path("/site")) == "templates/page.html:1 > templates/page.html:7 > templates/layout.html:3"
    with pytest.raises(ValueError):
        SourceChain.of()


def test_render_point_table_dedupes_and_sorts() -> None:
    flattened = FlatteningResultCollection()
    flattened.add(
        FlattenedUnit(
            template=PAGE,
            python_file=Path("/scratch/flattening/page_html_0000.py"),
            source="",
            source_map={30: SourceChain.of(SourceLocation(PAGE, 1), SourceLocation(LAYOUT, 9))},
            context_variables=(),
        )
    )
    calls = [
        RenderCall("page.html", VIEWS, 20),
        RenderCall("page.html", VIEWS, 10),
        RenderCall(str(PAGE), VIEWS, 10),
        RenderCall("missing.html", VIEWS, 5),
        RenderCall("layout.html", Path("/scratch/flattening/page_html_0000.py"), 30),
    ]

    table = build_render_point_table(
        calls,
        canonicalizer=_Canonicalizer(),  # type: ignore[arg-type]
        flattened=flattened,
    )

    assert table == {
        PAGE: (
            RenderPoint(PAGE, SourceLocation(VIEWS, 10)),
            RenderPoint(PAGE, SourceLocation(VIEWS, 20)),
        ),
        LAYOUT: (RenderPoint(LAYOUT, SourceLocation(LAYOUT, 9)),),
    }


def test_render_points_sort_file_names_naturally() -> None:
    page2 = Path("/site/app/page2.py")
    page10 = Path("/site/app/page10.py")
    calls = [RenderCall("page.html", page10, 1), RenderCall("page.html", page2, 5)]

    table = build_render_point_table(
        calls,
        canonicalizer=_Canonicalizer(),  # type: ignore[arg-type]
        flattened=FlatteningResultCollection(),
    )

    assert [point.location.file for point in table[PAGE]] == [page2, page10]


def test_mapper_resolves_drops_and_keeps_unmapped() -> None:
    chain = SourceChain.of(SourceLocation(PAGE, 4))
    points = (RenderPoint(PAGE, SourceLocation(VIEWS, 10)),)
    mapper = ErrorToSourceFileMapper(_injected({12: chain}), {PAGE: points})

    resolved = mapper.map(
        [
            RawDiagnostic(PAGE_UNIT, 12, '"User" has no attribute "nmae"', "attr-defined"),
            RawDiagnostic(PAGE_UNIT, 3, 'Name "_jt_out" already defined', "no-redef"),
            RawDiagnostic(VIEWS, 8, "Incompatible return value type", "return-value"),
        ]
    )

    assert len(resolved) == 2
    mapped, unmapped = resolved
    assert mapped.chain == chain
    assert mapped.template == PAGE
    assert mapped.render_points == points
    assert mapped.python_line == 12
    assert mapped.can_be_suppressed
    assert unmapped.chain is None
    assert unmapped.template is None
    assert unmapped.python_file == VIEWS
    assert not unmapped.can_be_suppressed


def test_filter_drops_scaffolding_noise() -> None:
    error_filter = ErrorFilter([*DEFAULT_IGNORE_RULES, IgnoreRule(identifier="no-any-return")])
    chain = SourceChain.of(SourceLocation(PAGE, 1))
    kept = _resolved('"User" has no attribute "nmae"', chain)

    result = error_filter.filter(
        [
            kept,
            _resolved('Name "_jt_buf3" already defined on line 12', chain, identifier="no-redef"),
            _resolved('Unused "type: ignore" comment', chain, identifier="unused-ignore"),
            _resolved("Returning Any from function", chain, identifier="no-any-return"),
        ]
    )

    assert result == [kept]
    assert not error_filter.is_ignored(_resolved('Name "_jt_block_title__super" is not defined', chain))


def test_collapser_merges_by_template_line() -> None:
    layout_line = SourceLocation(LAYOUT, 3)
    via_page = SourceChain.of(SourceLocation(PAGE, 1), layout_line)
    via_other = SourceChain.of(SourceLocation(Path("/site/templates/other.html"), 1), layout_line)
    page_point = RenderPoint(PAGE, SourceLocation(VIEWS, 10))
    other_point = RenderPoint(PAGE, SourceLocation(VIEWS, 30))

    diagnostics = [
        _resolved("boom", via_page, points=(page_point,)),
        _resolved("boom", via_other, points=(other_point, page_point), can_be_suppressed=False),
        _resolved("other", via_page),
        _resolved("boom", None),
        _resolved("boom", None),
    ]

    collapsed = ErrorCollapser().collapse(diagnostics)

    assert len(collapsed) == 3
    merged = collapsed[0]
    assert merged.chain == via_page
    assert merged.render_points == (page_point, other_point)
    assert not merged.can_be_suppressed
    assert collapsed[1].message == "other"
    assert collapsed[2].chain is None
    assert ErrorCollapser().collapse(collapsed) == collapsed


@pytest.mark.parametrize(
    ("message", "expected"),
    [
        (
            'Name "_jt_block_sidebar__super" is not defined',
            'Block "sidebar" has no parent block to call with super()',
        ),
        ('Name "_jt_block_sidebar" is not defined', 'Block "sidebar" is not defined'),
        ('Module "jinjastan_runtime.filters" has no attribute "shout"', 'Unknown filter "shout"'),
        ('Module "jinjastan_runtime.tests" has no attribute "in_"', 'Unknown test "in"'),
        (
            'Argument 1 to "upper" has incompatible type "int"; expected "builtins.str"',
            'Argument 1 to "upper" has incompatible type "int"; expected "str"',
        ),
        (
            '"jinjastan_runtime.runtime.LoopContext" has no attribute "idx"',
            '"LoopContext" has no attribute "idx"',
        ),
        ('Argument 1 to "int_" has incompatible type', 'Argument 1 to "int" has incompatible type'),
        ('"User" has no attribute "class_"', '"User" has no attribute "class"'),
        ('"User" has no attribute "nick_"', '"User" has no attribute "nick_"'),
    ],
)
def test_transform_message(message: str, expected: str) -> None:
    assert transform_message(message) == expected


def test_transformer_rewrites_message_and_tip() -> None:
    diagnostic = ResolvedDiagnostic(
        message='Unsupported operand types for + ("builtins.str" and "builtins.int")',
        identifier="operator",
        tip="Both left and right operands are unions\nSee jinjastan_runtime.filters.upper",
    )

    (transformed,) = ErrorTransformer().transform([diagnostic])

    assert transformed.message == 'Unsupported operand types for + ("str" and "int")'
    assert transformed.tip == "Both left and right operands are unions\nSee upper"
    assert transformed.identifier == "operator"

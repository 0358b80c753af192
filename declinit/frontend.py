"""
declinit/frontend.py
════════════════════

Front end for a small C++-like declaration language.

One statement per declaration; the accepted forms are::

    struct Widget { Widget(); Widget(int); Widget(int, double); };
    struct Tag;                                 // implicit default and copy
    int a;           int b(5);       char c{a};      double d = 1.5;
    Widget w(Widget());                         // most vexing parse
    auto x = 4.5;    auto y{1, 2};   auto z = {1, 2};    auto v(Widget(3));
    unsigned char u = static_cast<unsigned char>(300);
    std::initializer_list<int> l{1, 2, 3};
    auto f(int a) -> decltype(a + 1);
    auto g(int a) { return a * 2; }

``//`` and ``/* */`` comments are whitespace.  Names are resolved in source
order: a ``struct`` makes its name a type, an explicit declaration that
resolves to a function declaration makes its name a free function, a
variable definition makes its name usable as a non-constant value.

The grammar is a parsimonious PEG; ``DeclarationBuilder`` walks the parse
tree into ``DeclarationFragment`` and ``CallableDeclaration`` values.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from parsimonious.exceptions import IncompleteParseError, ParseError, VisitationError
from parsimonious.grammar import Grammar
from parsimonious.nodes import Node, NodeVisitor

from .deduction import deduce, deduce_return
from .disambiguator import Role, classify
from .errors import FrontendError, SourceSpan
from .fragments import (
    Argument,
    BinaryExpr,
    BraceList,
    CallableDeclaration,
    CallExpr,
    DeclarationFragment,
    Decltype,
    Empty,
    Explicit,
    Expr,
    Inferred,
    InferredBraced,
    InferredKind,
    Parameter,
    ParamRef,
    ParenCall,
    ReturnPath,
    SingleValue,
    TypeName,
    ValueExpr,
)
from .type_model import (
    BOOL,
    DEFAULT_CONTEXT,
    UNKNOWN,
    Aggregate,
    ListOf,
    TypeContext,
    TypeKind,
    aggregate,
)

logger = logging.getLogger(__name__)


# ═════════════════════════════════════════════════════════════════════════
#  PART 1: GRAMMAR (Parsimonious PEG)
# ═════════════════════════════════════════════════════════════════════════

DECLARATION_GRAMMAR = Grammar(r'''
    # ─────────────────────────────────────────────────────────────
    # Top level
    # ─────────────────────────────────────────────────────────────

    unit                = _ item*
    item                = struct_decl / callable_decl / callable_proto / declaration

    # ─────────────────────────────────────────────────────────────
    # Aggregates
    # ─────────────────────────────────────────────────────────────

    struct_decl         = kw_struct _ identifier _ struct_body? ";" _
    struct_body         = "{" _ access? ctor_decl* "}" _
    access              = kw_public _ ":" _
    ctor_decl           = identifier _ "(" _ ctor_params? ")" _ ";" _
    ctor_params         = ctor_param ("," _ ctor_param)*
    ctor_param          = const? type_spec _ ref? identifier? _
    const               = kw_const _
    ref                 = "&" _

    # ─────────────────────────────────────────────────────────────
    # Callables with a deduced return type
    # ─────────────────────────────────────────────────────────────

    callable_decl       = kw_auto _ identifier _ "(" _ params? ")" _ callable_tail
    callable_proto      = kw_auto _ identifier _ "(" _ params ")" _ end
    callable_tail       = trailing_tail / body
    trailing_tail       = trailing (body / end)
    params              = param ("," _ param)*
    param               = type_spec _ identifier _
    trailing            = "->" _ (decltype / type_spec) _
    decltype            = kw_decltype _ "(" _ expr ")" _
    body                = "{" _ return_stmt* "}" _ ";"? _
    return_stmt         = kw_return _ expr ";" _
    end                 = ";" _

    # ─────────────────────────────────────────────────────────────
    # Declarations
    # ─────────────────────────────────────────────────────────────

    declaration         = qualifier _ identifier _ initializer? ";" _
    qualifier           = kw_auto / type_spec
    initializer         = brace_init / assign_init / paren_init
    brace_init          = "{" _ args? "}" _
    assign_init         = "=" _ (brace_init / arg)
    paren_init          = "(" _ args? ")" _
    args                = arg ("," _ arg)*
    arg                 = (negation / cast / number / boolean / call / type_spec) _
    negation            = "-" _ arg
    cast                = kw_static_cast _ "<" _ type_spec _ ">" _ "(" _ arg ")"
    call                = type_spec _ "(" _ args? ")"

    # ─────────────────────────────────────────────────────────────
    # Expressions (return statements and decltype)
    # ─────────────────────────────────────────────────────────────

    expr                = operand (binop _ operand)*
    operand             = (negation_expr / cast / number / boolean / call_expr
                           / paren_expr / identifier) _
    negation_expr       = "-" _ operand
    call_expr           = identifier _ "(" _ expr_list? ")"
    expr_list           = expr ("," _ expr)*
    paren_expr          = "(" _ expr ")"
    binop               = ~r"==|!=|<=|>=|&&|\|\||[-+*/%<>]"

    # ─────────────────────────────────────────────────────────────
    # Types
    # ─────────────────────────────────────────────────────────────

    type_spec           = list_type / builtin_type / identifier
    list_type           = "std::initializer_list" _ "<" _ type_spec _ ">"
    builtin_type        = ~r"(?:(?:unsigned|signed|short|long|int|char|bool|float|double)\b\s*)+"

    # ─────────────────────────────────────────────────────────────
    # Lexical
    # ─────────────────────────────────────────────────────────────

    number              = float_lit / int_lit
    float_lit           = ~r"(?:[0-9][0-9']*\.[0-9']*|\.[0-9][0-9']*)(?:[eE][+-]?[0-9]+)?[fFlL]?|[0-9][0-9']*[eE][+-]?[0-9]+[fFlL]?"
    int_lit             = ~r"(?:0[xX][0-9a-fA-F']+|0[bB][01']+|[0-9][0-9']*)(?:[uU](?:ll|LL|l|L)?|(?:ll|LL|l|L)[uU]?)?"
    boolean             = ~r"(?:true|false)\b"

    identifier          = !reserved ~r"[A-Za-z_][A-Za-z0-9_]*"
    reserved            = ~r"(?:struct|class|public|const|auto|return|decltype|static_cast|true|false|unsigned|signed|short|long|int|char|bool|float|double)\b"

    kw_struct           = ~r"(?:struct|class)\b"
    kw_public           = ~r"public\b"
    kw_const            = ~r"const\b"
    kw_auto             = ~r"auto\b"
    kw_return           = ~r"return\b"
    kw_decltype         = ~r"decltype\b"
    kw_static_cast      = ~r"static_cast\b"

    _                   = ~r"(?:\s+|//[^\n]*|/\*.*?\*/)*"s
''')


# ═════════════════════════════════════════════════════════════════════════
#  PART 2: TRANSLATION UNIT
# ═════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class TranslationUnit:
    """
    Everything one source file declares.

    ``context`` holds the aggregates and free functions the file declares,
    on top of the builtin names of its data model.
    """
    context: TypeContext
    fragments: Tuple[DeclarationFragment, ...] = ()
    callables: Tuple[CallableDeclaration, ...] = ()
    file: str = ""

    def declarations(self) -> List[Union[DeclarationFragment, CallableDeclaration]]:
        """Fragments and callables merged back into source order."""
        items: List[Union[DeclarationFragment, CallableDeclaration]] = [
            *self.fragments, *self.callables
        ]
        return sorted(items, key=lambda d: (d.location.line, d.location.column))

    @property
    def aggregates(self) -> Tuple[Aggregate, ...]:
        builtin = set(self.context.builtin_names())
        return tuple(
            t for name, t in self.context.types.items()
            if name not in builtin and isinstance(t, Aggregate)
        )


# ═════════════════════════════════════════════════════════════════════════
#  PART 3: PARSE TREE → FRAGMENTS
# ═════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class _Name:
    text: str


@dataclass(frozen=True)
class _Spelling:
    """A builtin type spelling such as ``unsigned long``."""
    text: str


@dataclass(frozen=True)
class _ListSpelling:
    element: Any

    @property
    def text(self) -> str:
        return f"std::initializer_list<{self.element.text}>"


@dataclass(frozen=True)
class _Op:
    text: str


@dataclass(frozen=True)
class _Assigned:
    form: Any


@dataclass(frozen=True)
class _Ctor:
    name: str
    params: Tuple[Any, ...]
    node: Node = field(compare=False)


@dataclass(frozen=True)
class _Trailing:
    target: Union[TypeKind, Decltype]


@dataclass(frozen=True)
class _Body:
    paths: Tuple[ReturnPath, ...]


_SPECS = (_Name, _Spelling, _ListSpelling)
_ARGUMENTS = (ValueExpr, ParenCall, TypeName)
_EXPRS = (ValueExpr, ParamRef, BinaryExpr, CallExpr)

_PRECEDENCE: Dict[str, int] = {
    "||": 1, "&&": 2,
    "==": 3, "!=": 3,
    "<": 4, ">": 4, "<=": 4, ">=": 4,
    "+": 5, "-": 5,
    "*": 6, "/": 6, "%": 6,
}


def _flatten(children: Any) -> Iterator[Any]:
    """Yield the visited values below *children*, dropping raw nodes."""
    if isinstance(children, list):
        for child in children:
            yield from _flatten(child)
    elif children is not None and not isinstance(children, Node):
        yield children


class DeclarationBuilder(NodeVisitor):
    """
    Transforms the parse tree into fragments, resolving names in order.

    The visitor is stateful: ``context`` and ``variables`` grow as
    declarations are visited, so it must not be reused across files.
    """

    grammar = DECLARATION_GRAMMAR
    unwrapped_exceptions = (FrontendError,)

    def __init__(self, text: str, file: str = "", context: Optional[TypeContext] = None):
        self.text = text
        self.file = file
        self.context = context or DEFAULT_CONTEXT
        self.variables: Dict[str, TypeKind] = {}
        self.fragments: List[DeclarationFragment] = []
        self.callables: List[CallableDeclaration] = []
        self._scope: Dict[str, TypeKind] = {}

    def generic_visit(self, node, visited_children):
        return visited_children or node

    # ── Helpers ───────────────────────────────────────────────────────

    def _span(self, node: Node) -> SourceSpan:
        return SourceSpan.from_offset(self.text, node.start, self.file)

    def _error(self, message: str, node: Node) -> FrontendError:
        return FrontendError(message, span=self._span(node))

    def _type(self, spec: Any, node: Node) -> TypeKind:
        if isinstance(spec, _ListSpelling):
            return ListOf(self._type(spec.element, node))
        t = self.context.lookup_type(spec.text)
        if t is None:
            raise self._error(f"unknown type '{spec.text}'", node)
        return t

    def _argument(self, item: Any, node: Node) -> Argument:
        if isinstance(item, _ARGUMENTS):
            return item
        if isinstance(item, (_Spelling, _ListSpelling)):
            self._type(item, node)
            return TypeName(" ".join(item.text.split()))
        name = item.text
        if name in self._scope:
            return ParamRef(name)
        if name in self.variables:
            return ValueExpr.variable(name, self.variables[name])
        if self.context.is_type_name(name):
            return TypeName(name)
        if self.context.is_function(name):
            raise self._error(f"function '{name}' used without a call", node)
        raise self._error(f"use of undeclared identifier '{name}'", node)

    def _value(self, arg: Argument, node: Node) -> ValueExpr:
        """Coerce an argument to a value (brace and assignment positions)."""
        if isinstance(arg, ValueExpr):
            return arg
        if isinstance(arg, TypeName):
            raise self._error(f"type '{arg}' used where a value is expected", node)
        text = str(arg)
        if self.context.is_function(arg.callee):
            return ValueExpr.variable(text, self.context.functions[arg.callee])
        t = self.context.lookup_type(arg.callee)
        if isinstance(t, Aggregate):
            return ValueExpr.variable(text, t)
        if not arg.arguments:
            return ValueExpr(type=t, value=0, constant=True, text=text)
        if len(arg.arguments) != 1:
            raise self._error(f"functional cast '{text}' takes exactly one value", node)
        inner = self._value(arg.arguments[0], node)
        return ValueExpr.explicitly_converted(inner, t, text=text)

    # ── Unit ──────────────────────────────────────────────────────────

    def visit_unit(self, node, visited_children):
        return TranslationUnit(
            context=self.context,
            fragments=tuple(self.fragments),
            callables=tuple(self.callables),
            file=self.file,
        )

    # ── Aggregates ────────────────────────────────────────────────────

    def visit_struct_decl(self, node, visited_children):
        items = list(_flatten(visited_children))
        name = next(i for i in items if isinstance(i, _Name)).text
        ctors = [i for i in items if isinstance(i, _Ctor)]
        signatures = []
        for ctor in ctors:
            if ctor.name != name:
                raise self._error(
                    f"'{ctor.name}' is not a constructor of '{name}'", ctor.node)
        # the struct's own name is valid in its constructor parameters
        self.context = self.context.with_aggregate(Aggregate(name))
        for ctor in ctors:
            params = tuple(
                None if spec.text == name else self._type(spec, ctor.node)
                for spec in ctor.params
            )
            signatures.append(params)
        agg = aggregate(name, *signatures)
        self.context = self.context.with_aggregate(agg)
        logger.debug("struct %s with %d constructor(s)", name, len(agg.effective_constructors))
        return agg

    def visit_ctor_decl(self, node, visited_children):
        name, *params = _flatten(visited_children)
        return _Ctor(name.text, tuple(params), node)

    def visit_ctor_param(self, node, visited_children):
        return next(i for i in _flatten(visited_children) if isinstance(i, _SPECS))

    # ── Callables ─────────────────────────────────────────────────────

    def _callable(self, node, visited_children) -> CallableDeclaration:
        items = list(_flatten(visited_children))
        name = next(i for i in items if isinstance(i, _Name)).text
        trailing = next((i.target for i in items if isinstance(i, _Trailing)), None)
        body = next((i for i in items if isinstance(i, _Body)), None)
        callable_ = CallableDeclaration(
            name=name,
            parameters=tuple(i for i in items if isinstance(i, Parameter)),
            trailing=trailing,
            return_paths=body.paths if body is not None else (),
            has_body=body is not None,
            location=self._span(node),
        )
        self._scope = {}
        self.callables.append(callable_)
        self.context = self.context.with_function(name, deduce_return(callable_, self.context))
        return callable_

    visit_callable_decl = _callable
    visit_callable_proto = _callable

    def visit_param(self, node, visited_children):
        spec, name = [i for i in _flatten(visited_children) if isinstance(i, _SPECS)]
        t = self._type(spec, node)
        self._scope[name.text] = t
        return Parameter(name.text, t)

    def visit_trailing(self, node, visited_children):
        target = next(i for i in _flatten(visited_children) if isinstance(i, (Decltype, *_SPECS)))
        if isinstance(target, Decltype):
            return _Trailing(target)
        return _Trailing(self._type(target, node))

    def visit_decltype(self, node, visited_children):
        return Decltype(next(i for i in _flatten(visited_children) if isinstance(i, _EXPRS)))

    def visit_body(self, node, visited_children):
        return _Body(tuple(i for i in _flatten(visited_children) if isinstance(i, ReturnPath)))

    def visit_return_stmt(self, node, visited_children):
        expr = next(i for i in _flatten(visited_children) if isinstance(i, _EXPRS))
        return ReturnPath(expr, self._span(node))

    # ── Expressions ───────────────────────────────────────────────────

    def visit_expr(self, node, visited_children):
        items = [i for i in _flatten(visited_children) if isinstance(i, (_Op, *_EXPRS))]
        operands: List[Expr] = [items[0]]
        ops: List[str] = []
        # precedence climbing over the flat operand/operator sequence
        for op, operand in zip(items[1::2], items[2::2]):
            while ops and _PRECEDENCE[ops[-1]] >= _PRECEDENCE[op.text]:
                rhs = operands.pop()
                operands.append(BinaryExpr(ops.pop(), operands.pop(), rhs))
            ops.append(op.text)
            operands.append(operand)
        while ops:
            rhs = operands.pop()
            operands.append(BinaryExpr(ops.pop(), operands.pop(), rhs))
        return operands[0]

    def visit_operand(self, node, visited_children):
        item = next(i for i in _flatten(visited_children) if isinstance(i, (_Name, *_EXPRS)))
        if not isinstance(item, _Name):
            return item
        if item.text in self._scope:
            return ParamRef(item.text)
        if item.text in self.variables:
            return ValueExpr.variable(item.text, self.variables[item.text])
        raise self._error(f"use of undeclared identifier '{item.text}'", node)

    def visit_negation_expr(self, node, visited_children):
        operand = next(i for i in _flatten(visited_children) if isinstance(i, _EXPRS))
        if isinstance(operand, ValueExpr):
            return operand.negated()
        return BinaryExpr("-", ValueExpr.integer(0, self.context), operand)

    def visit_call_expr(self, node, visited_children):
        name, *args = [i for i in _flatten(visited_children) if isinstance(i, (_Name, *_EXPRS))]
        return CallExpr(name.text, tuple(args))

    def visit_binop(self, node, visited_children):
        return _Op(node.text)

    # ── Declarations ──────────────────────────────────────────────────

    def visit_declaration(self, node, visited_children):
        items = list(_flatten(visited_children))
        qualifier = items[0]
        identifier = items[1].text
        init: Any = items[2] if len(items) > 2 else Empty()
        if isinstance(init, _Assigned):
            init = init.form
        elif isinstance(init, BraceList) and qualifier is Inferred:
            qualifier = InferredBraced

        fragment = DeclarationFragment(identifier, qualifier, init, self._span(node))
        self.fragments.append(fragment)
        self._declare(fragment)
        return fragment

    def _declare(self, fragment: DeclarationFragment) -> None:
        role = classify(fragment, self.context)
        if isinstance(fragment.qualifier, Explicit):
            declared = fragment.qualifier.type
            if role is Role.FUNCTION_DECLARATION:
                self.context = self.context.with_function(fragment.identifier, declared)
            else:
                self.variables[fragment.identifier] = declared
        elif role is Role.VARIABLE_DEFINITION:
            self.variables[fragment.identifier] = deduce(
                fragment.qualifier, fragment.initializer, self.context, role=role)
        else:
            self.context = self.context.with_function(fragment.identifier, UNKNOWN)

    def visit_qualifier(self, node, visited_children):
        item = next(_flatten(visited_children))
        if isinstance(item, InferredKind):
            return item
        return Explicit(self._type(item, node))

    def visit_kw_auto(self, node, visited_children):
        return Inferred

    def visit_brace_init(self, node, visited_children):
        args = [i for i in _flatten(visited_children) if isinstance(i, _ARGUMENTS)]
        return BraceList(tuple(self._value(a, node) for a in args))

    def visit_assign_init(self, node, visited_children):
        item = next(i for i in _flatten(visited_children) if isinstance(i, (BraceList, *_ARGUMENTS)))
        if isinstance(item, BraceList):
            return _Assigned(item)
        if isinstance(item, ParenCall) and self.context.aggregate(item.callee) is not None:
            # copy initialization from a constructed temporary
            return _Assigned(item)
        return _Assigned(SingleValue(self._value(item, node)))

    def visit_paren_init(self, node, visited_children):
        return ParenCall(tuple(i for i in _flatten(visited_children) if isinstance(i, _ARGUMENTS)))

    def visit_arg(self, node, visited_children):
        item = next(i for i in _flatten(visited_children) if isinstance(i, (*_ARGUMENTS, *_SPECS)))
        return self._argument(item, node)

    def visit_negation(self, node, visited_children):
        arg = next(i for i in _flatten(visited_children) if isinstance(i, _ARGUMENTS))
        return self._value(arg, node).negated()

    def visit_cast(self, node, visited_children):
        items = list(_flatten(visited_children))
        spec = next(i for i in items if isinstance(i, _SPECS))
        inner = next(i for i in items if isinstance(i, (*_ARGUMENTS, *_EXPRS)))
        target = self._type(spec, node)
        text = " ".join(node.text.split())
        if isinstance(inner, (ParamRef, BinaryExpr, CallExpr)):
            return ValueExpr(type=target, explicit=True, text=text)
        return ValueExpr.explicitly_converted(self._value(inner, node), target, text=text)

    def visit_call(self, node, visited_children):
        callee, *rest = _flatten(visited_children)
        args = tuple(i for i in rest if isinstance(i, _ARGUMENTS))
        if isinstance(callee, _ListSpelling):
            raise self._error(f"cannot call '{callee.text}'", node)
        name = " ".join(callee.text.split())
        if not (self.context.is_function(name) or self.context.is_type_name(name)):
            raise self._error(f"'{name}' is neither a type nor a function", node)
        return ParenCall(args, callee=name)

    # ── Leaves ────────────────────────────────────────────────────────

    def visit_type_spec(self, node, visited_children):
        return next(_flatten(visited_children))

    def visit_list_type(self, node, visited_children):
        return _ListSpelling(next(i for i in _flatten(visited_children) if isinstance(i, _SPECS)))

    def visit_builtin_type(self, node, visited_children):
        return _Spelling(" ".join(node.text.split()))

    def visit_identifier(self, node, visited_children):
        return _Name(node.text)

    def visit_int_lit(self, node, visited_children):
        try:
            return ValueExpr.integer(node.text, self.context)
        except ValueError as exc:
            raise self._error(str(exc), node) from None

    def visit_float_lit(self, node, visited_children):
        return ValueExpr.floating(node.text, self.context)

    def visit_boolean(self, node, visited_children):
        return ValueExpr(type=BOOL, value=int(node.text == "true"), constant=True, text=node.text)


# ═════════════════════════════════════════════════════════════════════════
#  PART 4: PUBLIC API
# ═════════════════════════════════════════════════════════════════════════

def parse(text: str, file: str = "", context: Optional[TypeContext] = None) -> TranslationUnit:
    """
    Parse declaration source text.

    Parameters
    ----------
    text:
        Source text.
    file:
        Name used in source locations.
    context:
        Starting context (data model, pre-declared names).

    Raises
    ------
    FrontendError
        With the offending line and column when the text does not parse or
        names something undeclared.
    """
    try:
        tree = DECLARATION_GRAMMAR.parse(text)
    except IncompleteParseError as exc:
        span = SourceSpan.from_offset(text, exc.pos, file)
        raise FrontendError(f"unexpected input {text[exc.pos:exc.pos + 20]!r}",
                            span=span) from None
    except ParseError as exc:
        span = SourceSpan.from_offset(text, exc.pos, file)
        rule = exc.expr.name if exc.expr is not None and exc.expr.name else "declaration"
        raise FrontendError(f"syntax error, expected {rule}", span=span) from None

    builder = DeclarationBuilder(text, file, context)
    try:
        unit = builder.visit(tree)
    except VisitationError as exc:
        raise FrontendError(f"internal error while reading declarations: {exc}") from exc
    logger.info("%s: %d declaration(s), %d callable(s)", file or "<string>",
                len(unit.fragments), len(unit.callables))
    return unit


def parse_file(path: Union[str, Path], context: Optional[TypeContext] = None) -> TranslationUnit:
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise FrontendError(f"cannot read {p}: {exc}") from exc
    return parse(text, str(p), context)


__all__ = [
    "DECLARATION_GRAMMAR",
    "DeclarationBuilder",
    "TranslationUnit",
    "parse",
    "parse_file",
]

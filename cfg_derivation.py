#!/usr/bin/env python3
"""cfg_derivation.py

Random context-free grammars and bounded derivation walks.

Key features:
- Symbol / Chain / Rule / Grammar value model.
- Random grammar generator with fixed shape constraints.
- Derivation walker that rewrites sentential forms and records a trace.
- JSON-based grammar files.
- Injectable randomness (pass a seeded random.Random for repeatable runs).

Run:
  python cfg_derivation.py random grammar.json --seed 123
  python cfg_derivation.py derive grammar.json --seed 7
  python cfg_derivation.py derive --seed 7
  python cfg_derivation.py --help
"""

from __future__ import annotations

import argparse
import json
import os
import random
import string
import sys
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any, Literal, cast

SymbolRole = Literal["terminal", "nonterminal", "empty"]
StopReason = Literal["no_rule", "no_nonterminal", "step_limit"]

EPSILON = "ε"

# The generator draws from a-y / A-Y; 'z' and 'Z' are never produced.
TERMINAL_CHARS = string.ascii_lowercase[:-1]
NONTERMINAL_CHARS = string.ascii_uppercase[:-1]

MAX_DERIVATION_STEPS = 10
TRACE_SEPARATOR = " -> "


# -------------------------
# Errors / Validation
# -------------------------


class GrammarError(LookupError):
    pass


class LeftError(GrammarError):
    """Left-hand side error. Reserved; nothing raises it yet."""


class RightError(GrammarError):
    """No rule has the queried nonterminal on its left-hand side."""


class NoSymbolError(GrammarError):
    """A chain or right-hand side holds no nonterminal."""


class ConfigError(ValueError):
    pass


def _require(cond: bool, msg: str) -> None:
    if not cond:
        raise ConfigError(msg)


def _as_str(x: Any, path: str) -> str:
    _require(isinstance(x, str), f"{path} must be a string")
    return cast(str, x)


def _as_char(x: Any, path: str) -> str:
    s = _as_str(x, path)
    _require(len(s) == 1, f"{path} must be a single character")
    return s


def _as_list(x: Any, path: str) -> list[Any]:
    _require(isinstance(x, list), f"{path} must be an array")
    return cast(list[Any], x)


def _as_dict(x: Any, path: str) -> dict[str, Any]:
    _require(isinstance(x, dict), f"{path} must be an object")
    return cast(dict[str, Any], x)


# -------------------------
# Symbols and chains
# -------------------------


@dataclass(frozen=True)
class Symbol:
    character: str
    role: SymbolRole

    def __post_init__(self) -> None:
        _require(
            self.role in ("terminal", "nonterminal", "empty"),
            f"unknown symbol role {self.role!r}",
        )
        _require(
            isinstance(self.character, str) and len(self.character) == 1,
            f"symbol character must be a single character, got {self.character!r}",
        )
        _require(
            (self.role == "empty") == (self.character == EPSILON),
            f"{EPSILON!r} is reserved for the empty symbol",
        )

    @classmethod
    def terminal(cls, character: str) -> Symbol:
        return cls(character, "terminal")

    @classmethod
    def nonterminal(cls, character: str) -> Symbol:
        return cls(character, "nonterminal")

    @classmethod
    def empty(cls) -> Symbol:
        return cls(EPSILON, "empty")

    def __str__(self) -> str:
        return self.character


def is_terminal(symbol: Symbol) -> bool:
    return symbol.role == "terminal"


def is_nonterminal(symbol: Symbol) -> bool:
    return symbol.role == "nonterminal"


def is_empty(symbol: Symbol) -> bool:
    return symbol.role == "empty"


@dataclass
class Chain:
    """An ordered run of symbols: a sentential form or a right-hand side."""

    symbols: list[Symbol] = field(default_factory=list)

    @classmethod
    def of(cls, symbol: Symbol) -> Chain:
        return cls([symbol])

    def add_symbol(self, symbol: Symbol) -> None:
        self.symbols.append(symbol)

    def add_chain(self, other: Chain) -> None:
        self.symbols.extend(other.symbols)

    def first_nonterminal(self) -> tuple[Symbol, int]:
        """Return the leftmost nonterminal and its index."""
        for index, symbol in enumerate(self.symbols):
            if is_nonterminal(symbol):
                return symbol, index
        raise NoSymbolError(f"no nonterminal in {self.render()!r}")

    def render(self) -> str:
        return "".join(symbol.character for symbol in self.symbols)

    def __str__(self) -> str:
        return self.render()

    def __len__(self) -> int:
        return len(self.symbols)

    def __iter__(self) -> Iterator[Symbol]:
        return iter(self.symbols)


# -------------------------
# Rules
# -------------------------


@dataclass(frozen=True, init=False)
class Rule:
    """A production ``left -> right``.

    The right-hand side is held as a tuple; ``right`` hands out a fresh
    Chain on every access, so callers can never edit a grammar's rules.
    """

    left: Symbol
    rhs: tuple[Symbol, ...]

    def __init__(self, left: Symbol, right: Iterable[Symbol]) -> None:
        object.__setattr__(self, "left", left)
        object.__setattr__(self, "rhs", tuple(right))

    @property
    def right(self) -> Chain:
        return Chain(list(self.rhs))

    def apply(self, chain: Chain) -> Chain:
        """Rewrite every occurrence of ``left`` in ``chain``.

        Each match is replaced by the whole right-hand side, in order; all
        other symbols are copied through. The input chain is left untouched.
        """
        out = Chain()
        for symbol in chain:
            if symbol == self.left:
                out.symbols.extend(self.rhs)
            else:
                out.add_symbol(symbol)
        return out

    def get_nonterminal(self) -> Symbol:
        for symbol in self.rhs:
            if is_nonterminal(symbol):
                return symbol
        raise NoSymbolError(f"rule {self} has no nonterminal on its right-hand side")

    def is_empty_production(self) -> bool:
        return len(self.rhs) == 1 and is_empty(self.rhs[0])

    def __str__(self) -> str:
        return f"{self.left}{TRACE_SEPARATOR}{self.right}"


# -------------------------
# Generation limits
# -------------------------


@dataclass(frozen=True)
class GenerationLimits:
    """Inclusive count ranges and shape knobs for random grammars."""

    terminals: tuple[int, int] = (5, 9)
    nonterminals: tuple[int, int] = (5, 9)
    rules: tuple[int, int] = (20, 24)
    max_rhs: int = 4
    empty_probability: float = 0.25

    def check(self) -> None:
        for name in ("terminals", "nonterminals", "rules"):
            lo, hi = getattr(self, name)
            _require(1 <= lo <= hi, f"limits.{name} must satisfy 1 <= low <= high")
        _require(self.max_rhs >= 1, "limits.max_rhs must be >= 1")
        _require(
            0.0 <= self.empty_probability <= 1.0,
            "limits.empty_probability must be between 0 and 1",
        )


def _draw_alphabet(
    rng: random.Random, chars: str, count: int, role: SymbolRole, unique: bool
) -> list[Symbol]:
    if unique:
        _require(
            count <= len(chars),
            f"cannot draw {count} distinct {role} characters from {len(chars)}",
        )
        picked = rng.sample(chars, count)
    else:
        picked = [rng.choice(chars) for _ in range(count)]
    return [Symbol(ch, role) for ch in picked]


def _random_right_side(
    rng: random.Random,
    terminals: list[Symbol],
    nonterminals: list[Symbol],
    limits: GenerationLimits,
) -> Chain:
    if rng.random() < limits.empty_probability:
        return Chain.of(Symbol.empty())

    # One nonterminal, always leading; the rest are terminals.
    right = Chain.of(rng.choice(nonterminals))
    for _ in range(rng.randint(1, limits.max_rhs) - 1):
        right.add_symbol(rng.choice(terminals))
    return right


# -------------------------
# Grammar
# -------------------------


@dataclass
class Grammar:
    terminals: list[Symbol]
    nonterminals: list[Symbol]
    rules: list[Rule]
    start: Symbol

    @classmethod
    def generate_random(
        cls,
        rng: random.Random | None = None,
        *,
        limits: GenerationLimits | None = None,
        unique: bool = False,
    ) -> Grammar:
        """Build a random grammar.

        Without ``rng`` a fresh unseeded generator is used, so two calls are
        independent. ``unique`` samples each alphabet without replacement;
        otherwise characters may repeat inside an alphabet.
        """
        rng = rng if rng is not None else random.Random()
        limits = limits if limits is not None else GenerationLimits()
        limits.check()

        terminal_count = rng.randint(*limits.terminals)
        nonterminal_count = rng.randint(*limits.nonterminals)
        rule_count = rng.randint(*limits.rules)

        terminals = _draw_alphabet(
            rng, TERMINAL_CHARS, terminal_count, "terminal", unique
        )
        nonterminals = _draw_alphabet(
            rng, NONTERMINAL_CHARS, nonterminal_count, "nonterminal", unique
        )

        rules: list[Rule] = []
        for _ in range(rule_count):
            left = rng.choice(nonterminals)
            right = _random_right_side(rng, terminals, nonterminals, limits)
            rules.append(Rule(left, right))

        return cls(
            terminals=terminals,
            nonterminals=nonterminals,
            rules=rules,
            start=nonterminals[0],
        )

    def terminals_as_text(self) -> str:
        return "".join(f"{t.character} " for t in self.terminals)

    def nonterminals_as_text(self) -> str:
        return "".join(f"{nt.character} " for nt in self.nonterminals)

    def _matching(self, nt: Symbol) -> list[Rule]:
        return [r for r in self.rules if r.left.character == nt.character]

    def find_all_matching(self, nt: Symbol) -> list[Rule]:
        matches = self._matching(nt)
        if not matches:
            raise RightError(f"no rule rewrites {nt.character!r}")
        return matches

    def find_first_matching(self, nt: Symbol) -> Rule:
        for r in self.rules:
            if r.left.character == nt.character:
                return r
        raise RightError(f"no rule rewrites {nt.character!r}")

    def find_one_random_matching(
        self, nt: Symbol, rng: random.Random | None = None
    ) -> Rule:
        rng = rng if rng is not None else random.Random()
        return rng.choice(self.find_all_matching(nt))

    def stuck_nonterminals(self) -> list[Symbol]:
        """Nonterminals (first occurrence order) that no rule rewrites."""
        out: list[Symbol] = []
        for nt in self.nonterminals:
            if nt not in out and not self._matching(nt):
                out.append(nt)
        return out

    def generate_line(
        self, rng: random.Random | None = None
    ) -> tuple[list[Chain], list[Rule], str]:
        d = derive(self, rng=rng)
        return d.chains, d.rules, d.trace


# -------------------------
# Derivation
# -------------------------


@dataclass
class Derivation:
    chains: list[Chain]
    rules: list[Rule]
    trace: str
    stop: StopReason

    @property
    def final(self) -> Chain:
        return self.chains[-1]

    @property
    def steps(self) -> int:
        return len(self.chains) - 1


def derive(
    grammar: Grammar,
    *,
    rng: random.Random | None = None,
    max_steps: int = MAX_DERIVATION_STEPS,
) -> Derivation:
    """Walk a random derivation from the start symbol.

    A cursor tracks the nonterminal to expand next. Each step picks a random
    rule for the cursor, applies it to the newest chain and moves the cursor
    to the first nonterminal of that rule's right-hand side. The walk ends
    when the cursor has no rule, when the applied rule yields no nonterminal,
    or after ``max_steps`` steps. None of these is an error.

    The first entry of ``rules`` is the identity rule ``start -> start`` so
    that ``chains`` and ``rules`` line up index for index.
    """
    _require(max_steps >= 0, "max_steps must be >= 0")
    rng = rng if rng is not None else random.Random()

    cursor = grammar.start
    chains = [Chain.of(grammar.start)]
    rules = [Rule(grammar.start, Chain.of(grammar.start))]
    trace = chains[0].render()

    stop: StopReason = "step_limit"
    for _ in range(max_steps):
        try:
            rule = grammar.find_one_random_matching(cursor, rng)
        except RightError:
            stop = "no_rule"
            break

        chain = rule.apply(chains[-1])
        chains.append(chain)
        rules.append(rule)
        trace += TRACE_SEPARATOR + chain.render()

        try:
            cursor = rule.get_nonterminal()
        except NoSymbolError:
            stop = "no_nonterminal"
            break

    return Derivation(chains=chains, rules=rules, trace=trace, stop=stop)


# -------------------------
# Formatting
# -------------------------


def format_grammar(grammar: Grammar) -> str:
    lines = [
        f"Terminals: {grammar.terminals_as_text()}",
        f"Nonterminals: {grammar.nonterminals_as_text()}",
        "Rules:",
    ]
    width = len(str(len(grammar.rules)))
    for i, r in enumerate(grammar.rules):
        lines.append(f"  {i:>{width}}  {r}")
    lines.append(f"Initial state: {grammar.start}")
    return "\n".join(lines)


def format_derivation(derivation: Derivation) -> str:
    lines: list[str] = []
    # Index 0 is the identity bookkeeping rule; show it as the axiom.
    lines.append(f"  0  {derivation.chains[0]}")
    width = len(str(derivation.steps))
    for i in range(1, len(derivation.chains)):
        lines.append(
            f"  {i:>{width}}  {derivation.rules[i]!s:<12} {derivation.chains[i]}"
        )
    lines.append(f"trace: {derivation.trace}")
    lines.append(f"stopped: {derivation.stop}")
    return "\n".join(lines)


# -------------------------
# Config parsing
# -------------------------


def _classify(
    ch: str, terminals: set[str], nonterminals: set[str], path: str
) -> Symbol:
    in_t = ch in terminals
    in_nt = ch in nonterminals
    _require(
        not (in_t and in_nt),
        f"{path}: {ch!r} is both a terminal and a nonterminal",
    )
    _require(in_t or in_nt, f"{path}: unknown symbol {ch!r}")
    return Symbol.terminal(ch) if in_t else Symbol.nonterminal(ch)


def parse_grammar(obj: dict[str, Any]) -> Grammar:
    obj = _as_dict(obj, "root")

    terminals = [
        Symbol.terminal(_as_char(c, f"terminals[{i}]"))
        for i, c in enumerate(_as_list(obj.get("terminals", []), "terminals"))
    ]
    nonterminals = [
        Symbol.nonterminal(_as_char(c, f"nonterminals[{i}]"))
        for i, c in enumerate(_as_list(obj.get("nonterminals", []), "nonterminals"))
    ]
    _require(len(nonterminals) > 0, "nonterminals must be non-empty")

    t_chars = {t.character for t in terminals}
    nt_chars = {nt.character for nt in nonterminals}
    _require(EPSILON not in t_chars | nt_chars, f"{EPSILON!r} is reserved")

    start_ch = _as_char(obj.get("start", nonterminals[0].character), "start")
    _require(start_ch in nt_chars, f"start {start_ch!r} is not a nonterminal")

    rules: list[Rule] = []
    for i, raw in enumerate(_as_list(obj.get("rules", []), "rules")):
        path = f"rules[{i}]"
        r = _as_dict(raw, path)
        left = _as_char(r.get("left"), f"{path}.left")
        _require(left in nt_chars, f"{path}.left {left!r} is not a nonterminal")
        right_text = _as_str(r.get("right"), f"{path}.right")
        _require(len(right_text) > 0, f"{path}.right must be non-empty (use {EPSILON!r})")

        if right_text == EPSILON:
            right = Chain.of(Symbol.empty())
        else:
            _require(
                EPSILON not in right_text,
                f"{path}.right: {EPSILON!r} must stand alone",
            )
            right = Chain(
                [
                    _classify(ch, t_chars, nt_chars, f"{path}.right")
                    for ch in right_text
                ]
            )
        rules.append(Rule(Symbol.nonterminal(left), right))

    return Grammar(
        terminals=terminals,
        nonterminals=nonterminals,
        rules=rules,
        start=Symbol.nonterminal(start_ch),
    )


def grammar_to_dict(grammar: Grammar, name: str | None = None) -> dict[str, Any]:
    obj: dict[str, Any] = {}
    if name is not None:
        obj["name"] = name
    obj["terminals"] = [t.character for t in grammar.terminals]
    obj["nonterminals"] = [nt.character for nt in grammar.nonterminals]
    obj["start"] = grammar.start.character
    obj["rules"] = [
        {"left": r.left.character, "right": r.right.render()} for r in grammar.rules
    ]
    return obj


def load_json(path: str) -> dict[str, Any]:
    with open(path, encoding="utf-8") as f:
        try:
            return cast(dict[str, Any], json.load(f))
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in {path}: {e}") from e


def _ensure_parent_dir(path: str) -> None:
    os.makedirs(os.path.dirname(os.path.abspath(path)) or ".", exist_ok=True)


def dump_json(obj: dict[str, Any], path: str) -> None:
    _ensure_parent_dir(path)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(obj, f, indent=2, ensure_ascii=False)
        f.write("\n")


# -------------------------
# CLI / Help
# -------------------------

HELP_EPILOG = r"""
GRAMMAR JSON SYNTAX

  name: string (optional)
      A human-readable title.

  terminals: array of single-character strings
  nonterminals: array of single-character strings (non-empty)

  start: single-character string (default: first nonterminal)
      Must be listed in nonterminals.

  rules: array of {"left": <nonterminal>, "right": <string>}
      Each character of "right" is looked up in the two alphabets.
      "ε" on its own is the empty production.

Example

    {
      "terminals": ["x", "y"],
      "nonterminals": ["S", "A"],
      "start": "S",
      "rules": [
        {"left": "S", "right": "Ax"},
        {"left": "A", "right": "y"},
        {"left": "A", "right": "ε"}
      ]
    }

DERIVATION

  Starting from the start symbol, each step picks a random rule for the
  current nonterminal and rewrites every occurrence of it in the newest
  form. The next nonterminal is the first one on the rule's right-hand
  side. The walk stops after 10 steps, when no rule exists for the current
  nonterminal, or when the applied rule has no nonterminal.
"""


def build_argparser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="cfg_derivation.py",
        description="Random context-free grammars and bounded derivations.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=HELP_EPILOG,
    )

    sub = p.add_subparsers(dest="cmd", required=True)

    pg = sub.add_parser(
        "random",
        help="Generate a random grammar and write it as JSON.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    pg.add_argument("output", help="Where to write the generated JSON file.")
    pg.add_argument(
        "--seed", type=int, default=None, help="Seed for repeatable randomness."
    )
    pg.add_argument(
        "--unique",
        action="store_true",
        help="Draw alphabet characters without repetition.",
    )

    ps = sub.add_parser(
        "show",
        help="Validate a grammar JSON file and print it.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    ps.add_argument("grammar", help="Path to the grammar JSON file.")

    pd = sub.add_parser(
        "derive",
        help="Run a random derivation (on a random grammar if none is given).",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    pd.add_argument("grammar", nargs="?", help="Path to the grammar JSON file.")
    pd.add_argument(
        "--seed", type=int, default=None, help="Seed for repeatable randomness."
    )
    pd.add_argument(
        "--steps",
        type=int,
        default=MAX_DERIVATION_STEPS,
        help=f"Maximum derivation steps (default {MAX_DERIVATION_STEPS}).",
    )
    pd.add_argument(
        "--unique",
        action="store_true",
        help=(
            "Draw alphabet characters without repetition "
            "(only without a grammar file)."
        ),
    )
    pd.add_argument(
        "-v", "--verbose", action="store_true", help="Print every step."
    )

    return p


# -------------------------
# Commands
# -------------------------


def cmd_random(output_path: str, seed: int | None, unique: bool) -> None:
    grammar = Grammar.generate_random(random.Random(seed), unique=unique)
    dump_json(grammar_to_dict(grammar, name="Random grammar"), output_path)


def cmd_show(grammar_path: str) -> None:
    obj = load_json(grammar_path)
    grammar = parse_grammar(obj)

    name = obj.get("name")
    if name is not None:
        print(f"name: {_as_str(name, 'name')}")
    print(format_grammar(grammar))

    stuck = grammar.stuck_nonterminals()
    if stuck:
        print(
            "warning: no rule for nonterminal(s) "
            + " ".join(nt.character for nt in stuck),
            file=sys.stderr,
        )


def cmd_derive(
    grammar_path: str | None,
    seed: int | None,
    steps: int,
    unique: bool,
    verbose: bool,
) -> None:
    rng = random.Random(seed)
    if grammar_path is None:
        grammar = Grammar.generate_random(rng, unique=unique)
    else:
        _require(not unique, "--unique only applies when no grammar file is given")
        grammar = parse_grammar(load_json(grammar_path))

    derivation = derive(grammar, rng=rng, max_steps=steps)

    print(format_grammar(grammar))
    print()
    if verbose:
        print(format_derivation(derivation))
    else:
        print(derivation.trace)


def main(argv: list[str] | None = None) -> int:
    ap = build_argparser()
    args = ap.parse_args(argv)

    try:
        if args.cmd == "random":
            cmd_random(args.output, args.seed, args.unique)
        elif args.cmd == "show":
            cmd_show(args.grammar)
        elif args.cmd == "derive":
            cmd_derive(args.grammar, args.seed, args.steps, args.unique, args.verbose)
        else:
            raise AssertionError("unreachable")
    except ConfigError as e:
        print(f"Config error: {e}", file=sys.stderr)
        return 2
    except OSError as e:
        print(f"File error: {e}", file=sys.stderr)
        return 2
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

"""清单声明文本的词法 / 语法分析

只覆盖声明式子集，不是通用语言解析器:
  import 语句、let/var 绑定、调用（含隐式成员 .foo(...)）、成员引用、
  数组、字符串、数字、true/false/nil、..< / ... 区间、// 与 /* */ 注释。

输出为不可变 AST，由 loader 求值为清单模型。
"""

from __future__ import annotations

from dataclasses import dataclass, field

from pkgsolve.core.exceptions import MalformedDeclarationError

# =========================================================================
# AST
# =========================================================================


@dataclass(frozen=True)
class Node:
    line: int = field(default=0, compare=False, kw_only=True)
    column: int = field(default=0, compare=False, kw_only=True)


@dataclass(frozen=True)
class StringLit(Node):
    value: str


@dataclass(frozen=True)
class NumberLit(Node):
    text: str


@dataclass(frozen=True)
class BoolLit(Node):
    value: bool


@dataclass(frozen=True)
class NilLit(Node):
    pass


@dataclass(frozen=True)
class Ident(Node):
    name: str


@dataclass(frozen=True)
class MemberRef(Node):
    """.name 或 base.name；base 为 None 表示隐式成员"""

    name: str
    base: Node | None = None


@dataclass(frozen=True)
class Arg(Node):
    label: str | None
    value: Node


@dataclass(frozen=True)
class Call(Node):
    callee: Node
    args: tuple[Arg, ...]

    @property
    def name(self) -> str:
        if isinstance(self.callee, (Ident, MemberRef)):
            return self.callee.name
        return ""

    @property
    def implicit(self) -> bool:
        return isinstance(self.callee, MemberRef) and self.callee.base is None


@dataclass(frozen=True)
class ArrayLit(Node):
    items: tuple[Node, ...]


@dataclass(frozen=True)
class RangeLit(Node):
    lower: Node
    upper: Node
    closed: bool


@dataclass(frozen=True)
class Binding(Node):
    name: str
    value: Node


@dataclass(frozen=True)
class SourceFile:
    imports: tuple[str, ...]
    bindings: tuple[Binding, ...]

    def binding(self, name: str) -> Binding | None:
        for b in self.bindings:
            if b.name == name:
                return b
        return None


# =========================================================================
# 词法
# =========================================================================


@dataclass(frozen=True)
class Token:
    kind: str  # ident / string / number / punct / eof
    text: str
    line: int
    column: int


_PUNCT = ("..<", "...", "(", ")", "[", "]", ",", ":", ".", "=")
_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "0": "\0", '"': '"', "'": "'", "\\": "\\"}


class _Lexer:
    def __init__(self, text: str, path: str) -> None:
        self.text = text
        self.path = path
        self.pos = 0
        self.line = 1
        self.col = 1

    def error(self, message: str, line: int | None = None, col: int | None = None) -> MalformedDeclarationError:
        return MalformedDeclarationError(
            message, path=self.path, line=line or self.line, column=col or self.col,
        )

    def _advance(self, n: int = 1) -> None:
        for _ in range(n):
            if self.text[self.pos] == "\n":
                self.line += 1
                self.col = 1
            else:
                self.col += 1
            self.pos += 1

    def _skip_trivia(self) -> None:
        text = self.text
        while self.pos < len(text):
            ch = text[self.pos]
            if ch in " \t\r\n;":
                self._advance()
            elif text.startswith("//", self.pos):
                while self.pos < len(text) and text[self.pos] != "\n":
                    self._advance()
            elif text.startswith("/*", self.pos):
                line, col = self.line, self.col
                depth = 0
                while True:
                    if self.pos >= len(text):
                        raise self.error("块注释未闭合", line, col)
                    if text.startswith("/*", self.pos):
                        depth += 1
                        self._advance(2)
                    elif text.startswith("*/", self.pos):
                        depth -= 1
                        self._advance(2)
                        if depth == 0:
                            break
                    else:
                        self._advance()
            else:
                return

    def tokens(self) -> list[Token]:
        result: list[Token] = []
        text = self.text
        while True:
            self._skip_trivia()
            if self.pos >= len(text):
                result.append(Token("eof", "", self.line, self.col))
                return result
            ch = text[self.pos]
            line, col = self.line, self.col
            if ch == '"':
                result.append(Token("string", self._string(), line, col))
            elif ch.isalpha() or ch == "_":
                start = self.pos
                while self.pos < len(text) and (text[self.pos].isalnum() or text[self.pos] == "_"):
                    self._advance()
                result.append(Token("ident", text[start:self.pos], line, col))
            elif ch.isdigit():
                start = self.pos
                while self.pos < len(text) and (text[self.pos].isdigit() or text[self.pos] == "_"):
                    self._advance()
                # 小数部分，注意不要吞掉 ..< / ...
                if (
                    self.pos + 1 < len(text) and text[self.pos] == "."
                    and text[self.pos + 1].isdigit()
                ):
                    self._advance()
                    while self.pos < len(text) and text[self.pos].isdigit():
                        self._advance()
                result.append(Token("number", text[start:self.pos].replace("_", ""), line, col))
            else:
                for p in _PUNCT:
                    if text.startswith(p, self.pos):
                        self._advance(len(p))
                        result.append(Token("punct", p, line, col))
                        break
                else:
                    raise self.error(f"无法识别的字符 {ch!r}")

    def _string(self) -> str:
        text = self.text
        if text.startswith('"""', self.pos):
            raise self.error("不支持多行字符串字面量")
        line, col = self.line, self.col
        self._advance()
        chars: list[str] = []
        while True:
            if self.pos >= len(text) or text[self.pos] == "\n":
                raise self.error("字符串未闭合", line, col)
            ch = text[self.pos]
            if ch == '"':
                self._advance()
                return "".join(chars)
            if ch == "\\":
                if self.pos + 1 >= len(text):
                    raise self.error("字符串未闭合", line, col)
                nxt = text[self.pos + 1]
                if nxt == "u" and text.startswith("{", self.pos + 2):
                    end = text.find("}", self.pos + 3)
                    if end < 0:
                        raise self.error("无效的 unicode 转义")
                    try:
                        chars.append(chr(int(text[self.pos + 3:end], 16)))
                    except ValueError as e:
                        raise self.error("无效的 unicode 转义") from e
                    self._advance(end + 1 - self.pos)
                    continue
                if nxt == "(":
                    raise self.error("不支持字符串插值")
                if nxt not in _ESCAPES:
                    raise self.error(f"无效的转义序列 \\{nxt}")
                chars.append(_ESCAPES[nxt])
                self._advance(2)
                continue
            chars.append(ch)
            self._advance()


# =========================================================================
# 语法
# =========================================================================


class _Parser:
    def __init__(self, tokens: list[Token], path: str) -> None:
        self.tokens = tokens
        self.path = path
        self.i = 0

    @property
    def tok(self) -> Token:
        return self.tokens[self.i]

    def error(self, message: str, tok: Token | None = None) -> MalformedDeclarationError:
        t = tok or self.tok
        return MalformedDeclarationError(message, path=self.path, line=t.line, column=t.column)

    def _is(self, kind: str, text: str | None = None) -> bool:
        t = self.tok
        return t.kind == kind and (text is None or t.text == text)

    def _expect(self, kind: str, text: str | None = None) -> Token:
        if not self._is(kind, text):
            want = text or kind
            got = self.tok.text or self.tok.kind
            raise self.error(f"期望 '{want}'，实际为 '{got}'")
        t = self.tok
        self.i += 1
        return t

    def source_file(self) -> SourceFile:
        imports: list[str] = []
        bindings: list[Binding] = []
        while not self._is("eof"):
            t = self.tok
            if self._is("ident", "import"):
                self.i += 1
                parts = [self._expect("ident").text]
                while self._is("punct", "."):
                    self.i += 1
                    parts.append(self._expect("ident").text)
                imports.append(".".join(parts))
            elif self._is("ident", "let") or self._is("ident", "var"):
                self.i += 1
                name = self._expect("ident").text
                if self._is("punct", ":"):
                    self.i += 1
                    self._expect("ident")
                self._expect("punct", "=")
                bindings.append(Binding(name, self.expression(), line=t.line, column=t.column))
            else:
                raise self.error(f"清单中不支持的语句: '{t.text}'")
        return SourceFile(tuple(imports), tuple(bindings))

    def expression(self) -> Node:
        start = self.tok
        lower = self.postfix()
        if self._is("punct", "..<") or self._is("punct", "..."):
            closed = self.tok.text == "..."
            self.i += 1
            upper = self.postfix()
            return RangeLit(lower, upper, closed, line=start.line, column=start.column)
        return lower

    def postfix(self) -> Node:
        node = self.primary()
        while True:
            if self._is("punct", "("):
                node = Call(node, self.arguments(), line=node.line, column=node.column)
            elif self._is("punct", ".") and self.tokens[self.i + 1].kind == "ident":
                self.i += 1
                name = self._expect("ident").text
                node = MemberRef(name, node, line=node.line, column=node.column)
            else:
                return node

    def arguments(self) -> tuple[Arg, ...]:
        self._expect("punct", "(")
        args: list[Arg] = []
        while not self._is("punct", ")"):
            t = self.tok
            label: str | None = None
            if t.kind == "ident" and self.tokens[self.i + 1].kind == "punct" and self.tokens[self.i + 1].text == ":":
                label = t.text
                self.i += 2
            args.append(Arg(label, self.expression(), line=t.line, column=t.column))
            if not self._is("punct", ","):
                break
            self.i += 1
        self._expect("punct", ")")
        return tuple(args)

    def primary(self) -> Node:
        t = self.tok
        pos = {"line": t.line, "column": t.column}
        if t.kind == "string":
            self.i += 1
            return StringLit(t.text, **pos)
        if t.kind == "number":
            self.i += 1
            return NumberLit(t.text, **pos)
        if t.kind == "ident":
            self.i += 1
            if t.text in ("true", "false"):
                return BoolLit(t.text == "true", **pos)
            if t.text == "nil":
                return NilLit(**pos)
            return Ident(t.text, **pos)
        if self._is("punct", "."):
            self.i += 1
            name = self._expect("ident").text
            return MemberRef(name, None, **pos)
        if self._is("punct", "["):
            self.i += 1
            items: list[Node] = []
            while not self._is("punct", "]"):
                items.append(self.expression())
                if not self._is("punct", ","):
                    break
                self.i += 1
            self._expect("punct", "]")
            return ArrayLit(tuple(items), **pos)
        if self._is("punct", "("):
            self.i += 1
            inner = self.expression()
            self._expect("punct", ")")
            return inner
        raise self.error(f"意外的 '{t.text or t.kind}'")


def parse(text: str, path: str = "") -> SourceFile:
    """解析清单文本，语法错误抛 MalformedDeclarationError（带行列号）"""
    tokens = _Lexer(text, path).tokens()
    return _Parser(tokens, path).source_file()

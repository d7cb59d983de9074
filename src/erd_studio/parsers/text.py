"""
SQL / DBML 공용 텍스트 스캐너.

모두 반복문 기반(재귀 없음)이라 괄호가 아무리 깊게 중첩돼도 스택이 넘치지 않는다.
따옴표(' " `) 안의 괄호/구분자는 무시한다.
"""
from __future__ import annotations
import re
from dataclasses import dataclass
from typing import List, Literal, Sequence

QUOTES = "'\"`"
OPENERS = {"(": ")", "[": "]", "{": "}"}
CLOSERS = {v: k for k, v in OPENERS.items()}

STATEMENT_START_RE = re.compile(r"^[ \t]*CREATE\b", re.IGNORECASE | re.MULTILINE)


def find_quote_end(text: str, start: int) -> int:
    """text[start]가 따옴표일 때 닫는 따옴표 다음 인덱스. 안 닫혔으면 -1."""
    q = text[start]
    i = start + 1
    n = len(text)
    while i < n:
        ch = text[i]
        if ch == "\\" and q != "`":
            i += 2
            continue
        if ch == q:
            # '' / "" / `` 는 이스케이프된 따옴표
            if i + 1 < n and text[i + 1] == q:
                i += 2
                continue
            return i + 1
        i += 1
    return -1


def scan_quoted(text: str, start: int) -> int:
    """find_quote_end 와 같지만 안 닫힌 따옴표는 텍스트 끝까지로 본다."""
    end = find_quote_end(text, start)
    return len(text) if end < 0 else end


def strip_comments(
    text: str,
    line_comments: Sequence[str] = ("--",),
    block: bool = True,
    hash_comments: bool = True,
) -> str:
    """
    주석 제거. `#` (MySQL)은 줄 처음이나 공백 뒤에서, 식 괄호 밖(깊이 1 이하)일 때만 주석이다.
    Postgres 의 `CHECK (a # 1 > 0)` 같은 XOR 연산자는 남긴다.
    """
    out: List[str] = []
    depth = 0
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch in QUOTES:
            end = find_quote_end(text, i)
            if end < 0:
                # 안 닫힌 따옴표는 그 줄 끝까지만
                nl = text.find("\n", i)
                end = n if nl < 0 else nl
            out.append(text[i:end])
            i = end
            continue
        if block and text.startswith("/*", i):
            end = text.find("*/", i + 2)
            i = n if end < 0 else end + 2
            out.append(" ")
            continue
        is_hash = (
            hash_comments and ch == "#" and depth <= 1
            and (i == 0 or text[i - 1].isspace())
        )
        if is_hash or any(text.startswith(m, i) for m in line_comments):
            end = text.find("\n", i)
            i = n if end < 0 else end
            continue
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth = max(0, depth - 1)
        elif ch == ";":
            depth = 0
        out.append(ch)
        i += 1
    return "".join(out)


def split_top_level(text: str, delimiter: str = ",") -> List[str]:
    """괄호/따옴표 밖의 delimiter로만 나눈다. 빈 조각(끝에 붙은 콤마 등)은 버린다."""
    parts: List[str] = []
    buf: List[str] = []
    depth = 0
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch in QUOTES:
            end = scan_quoted(text, i)
            buf.append(text[i:end])
            i = end
            continue
        if ch in OPENERS:
            depth += 1
        elif ch in CLOSERS:
            depth = max(0, depth - 1)
        elif ch == delimiter and depth == 0:
            part = "".join(buf).strip()
            if part:
                parts.append(part)
            buf = []
            i += 1
            continue
        buf.append(ch)
        i += 1
    last = "".join(buf).strip()
    if last:
        parts.append(last)
    return parts


def split_statements(text: str) -> List[str]:
    """
    ';' 로 문장 분리. 괄호 깊이는 보지 않는다: 괄호가 안 닫힌 문장이 뒤 문장까지 삼키면 안 된다.
    따옴표가 안 닫힌 문장은 다음 줄의 CREATE 에서 끊고 거기서부터 다시 나눈다.
    """
    stmts: List[str] = []
    start = 0
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch in QUOTES:
            end = find_quote_end(text, i)
            if end >= 0:
                i = end
                continue
            nl = text.find("\n", i)
            m = STATEMENT_START_RE.search(text, nl + 1) if nl >= 0 else None
            if m is None:
                i = n
                break
            stmt = text[start:m.start()].strip()
            if stmt:
                stmts.append(stmt)
            start = i = m.start()
            continue
        if ch == ";":
            stmt = text[start:i].strip()
            if stmt:
                stmts.append(stmt)
            start = i + 1
        i += 1
    last = text[start:].strip()
    if last:
        stmts.append(last)
    return stmts


def find_closing(text: str, start: int) -> int:
    """text[start]의 여는 괄호에 짝이 맞는 닫는 괄호 인덱스. 없으면 -1."""
    opener = text[start]
    closer = OPENERS[opener]
    depth = 0
    i = start
    n = len(text)
    while i < n:
        ch = text[i]
        if ch in QUOTES:
            i = scan_quoted(text, i)
            continue
        if ch == opener:
            depth += 1
        elif ch == closer:
            depth -= 1
            if depth == 0:
                return i
        i += 1
    return -1


def find_top_level(text: str, target: str, start: int = 0) -> int:
    """괄호/따옴표 밖에서 target 문자가 처음 나오는 위치. 없으면 -1."""
    depth = 0
    i = start
    n = len(text)
    while i < n:
        ch = text[i]
        if ch in QUOTES:
            i = scan_quoted(text, i)
            continue
        if ch == target and depth == 0:
            return i
        if ch in OPENERS:
            depth += 1
        elif ch in CLOSERS:
            depth = max(0, depth - 1)
        i += 1
    return -1


def unquote_identifier(name: str) -> str:
    name = name.strip()
    if len(name) >= 2 and (
        (name[0] == name[-1] and name[0] in "\"`'")
        or (name[0] == "[" and name[-1] == "]")
    ):
        return name[1:-1]
    return name


def split_qualified(name: str) -> List[str]:
    """`public`.`users` / "a"."b" / a.b 를 식별자 목록으로."""
    return [unquote_identifier(p) for p in split_top_level(name, ".")]


TokenKind = Literal["word", "string", "group"]


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    text: str
    # 바로 앞 토큰과 공백 없이 붙어 있었는지 (now() 의 "()" 등)
    glued: bool = False

    @property
    def upper(self) -> str:
        return self.text.upper()

    @property
    def inner(self) -> str:
        """group 토큰의 괄호 안쪽."""
        return self.text[1:-1].strip() if self.kind == "group" else self.text

    def is_keyword(self, *words: str) -> bool:
        return self.kind == "word" and self.upper in words


def tokenize(text: str) -> List[Token]:
    """
    공백 기준 토큰화. 괄호 묶음은 통째로 한 토큰(group), 따옴표 문자열도 한 토큰.
    식별자에 붙은 따옴표(`name`, "name")는 string이 아닌 word로 취급한다.
    """
    tokens: List[Token] = []
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch.isspace() or ch == ",":
            i += 1
            continue
        if ch == "(":
            end = find_closing(text, i)
            if end < 0:
                end = n - 1
            glued = i > 0 and not text[i - 1].isspace() and text[i - 1] != ","
            tokens.append(Token("group", text[i:end + 1], glued))
            i = end + 1
            continue
        if ch == "'":
            end = scan_quoted(text, i)
            tokens.append(Token("string", text[i:end]))
            i = end
            continue
        j = i
        while j < n and not text[j].isspace() and text[j] not in "(,":
            if text[j] in QUOTES:
                j = scan_quoted(text, j)
            else:
                j += 1
        tokens.append(Token("word", text[i:j]))
        i = j
    return tokens

"""
Recursive descent parser for scorch.

Converts a token stream into an Abstract Syntax Tree (AST). Statements are
dispatched on their first token and, for identifier-led statements, on the
token after it. Expressions use precedence climbing.
"""

import logging
from contextlib import contextmanager
from typing import List, Optional, Iterator
from .tokens import Token, TokenType, SourceSpan
from .ast import (
    # Expressions
    Expression, Literal, Identifier, BinaryOp, RelationalOp, LogicalOp,
    UnaryOp, FunctionCall, ArrayLiteral, IndexAccess, StructInit, DotAccess,
    FunctionLiteral, Parameter,
    # Statements
    Statement, Block, ExpressionStatement, Declaration, FunctionDecl,
    Assignment, IfStatement, ElseClause, RepeatStatement, BreakStatement,
    ReturnStatement, StructDecl, Program,
)
from .errors import (
    error_unexpected_token,
    error_unexpected_eof,
    error_invalid_expression,
    error_default_parameter,
    error_invalid_struct_member,
    error_invalid_assignment_target,
    error_invalid_number,
    error_parse_depth_exceeded,
)
from .lexer import tokenize

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 64


class Parser:
    """
    Recursive descent parser for scorch.

    Usage:
        parser = Parser(tokens)
        program = parser.parse_program()

    The parser implements precedence climbing for binary operators:
        Lowest:  && ||
                 == != < > <= >=
                 + -
        Highest: * / %
                 unary (! -)
    """

    # Operator precedence levels (higher = tighter binding)
    PRECEDENCE = {
        TokenType.AND: 1,
        TokenType.OR: 1,
        TokenType.EQ: 2,
        TokenType.NE: 2,
        TokenType.LT: 2,
        TokenType.GT: 2,
        TokenType.LE: 2,
        TokenType.GE: 2,
        TokenType.PLUS: 3,
        TokenType.MINUS: 3,
        TokenType.STAR: 4,
        TokenType.SLASH: 4,
        TokenType.PERCENT: 4,
    }

    LOGICAL_OPERATORS = {TokenType.AND, TokenType.OR}
    RELATIONAL_OPERATORS = {
        TokenType.EQ, TokenType.NE, TokenType.LT,
        TokenType.GT, TokenType.LE, TokenType.GE,
    }

    STATEMENT_END = (TokenType.NEWLINE, TokenType.SEMICOLON,
                     TokenType.RBRACE, TokenType.EOF)

    def __init__(self, tokens: List[Token], filename: Optional[str] = None,
                 max_depth: int = DEFAULT_MAX_DEPTH):
        self.tokens = tokens
        self.filename = filename
        self.max_depth = max_depth
        self.pos = 0
        self.depth = 0

    # =========================================================================
    # Token Navigation
    # =========================================================================

    def _current(self) -> Token:
        """Get current token."""
        if self.pos >= len(self.tokens):
            return self.tokens[-1]  # EOF
        return self.tokens[self.pos]

    def _peek(self, offset: int = 0) -> Token:
        """Peek at token at current position + offset."""
        idx = self.pos + offset
        if idx >= len(self.tokens):
            return self.tokens[-1]  # EOF
        return self.tokens[idx]

    def _is_at_end(self) -> bool:
        """Check if at end of tokens."""
        return self._current().type == TokenType.EOF

    def _check(self, token_type: TokenType) -> bool:
        """Check if current token is of given type."""
        return self._current().type == token_type

    def _check_any(self, *token_types: TokenType) -> bool:
        """Check if current token is any of given types."""
        return self._current().type in token_types

    def _check_ahead(self, token_type: TokenType, offset: int = 1) -> bool:
        """Check if token at current position + offset is of given type."""
        return self._peek(offset).type == token_type

    def _advance(self) -> Token:
        """Consume and return current token."""
        token = self._current()
        if not self._is_at_end():
            self.pos += 1
        return token

    def _consume(self, token_type: TokenType, expected: str) -> Token:
        """Consume token of expected type, or raise error."""
        if self._check(token_type):
            return self._advance()
        self._error(expected)

    def _match(self, *token_types: TokenType) -> Optional[Token]:
        """Consume token if it matches any of the given types."""
        if self._current().type in token_types:
            return self._advance()
        return None

    def _skip_newlines(self) -> None:
        """Skip any NEWLINE tokens."""
        while self._check(TokenType.NEWLINE):
            self._advance()

    def _skip_separators(self) -> None:
        """Skip blank lines and stray semicolons between statements."""
        while self._check_any(TokenType.NEWLINE, TokenType.SEMICOLON):
            self._advance()

    def _expect_statement_end(self) -> None:
        """Expect a statement delimiter; '}' and EOF are left for the caller."""
        if self._check_any(TokenType.RBRACE, TokenType.EOF):
            return
        if self._match(TokenType.NEWLINE, TokenType.SEMICOLON):
            return
        self._error("newline or ';'")

    def _error(self, expected: str) -> None:
        """Raise a parser error."""
        token = self._current()
        if token.type == TokenType.EOF:
            raise error_unexpected_eof(expected, token.span)
        raise error_unexpected_token(expected, str(token), token.span)

    def _span_from(self, start: Token) -> SourceSpan:
        """Create a span from start token to current position."""
        prev_pos = max(0, self.pos - 1)
        end_token = self.tokens[prev_pos]
        return SourceSpan(start.span.start, end_token.span.end)

    @contextmanager
    def _nested(self) -> Iterator[None]:
        """Track nesting so deep input fails cleanly instead of overflowing."""
        self.depth += 1
        try:
            if self.depth > self.max_depth:
                raise error_parse_depth_exceeded(self.max_depth, self._current().span)
            yield
        finally:
            self.depth -= 1

    # =========================================================================
    # Expression Parsing
    # =========================================================================

    def _parse_expression(self) -> Expression:
        """Parse an expression.

        Terminators (')', ']', '{', ',', newline, end of input) are left in
        place for the calling rule to consume.
        """
        with self._nested():
            return self._parse_binary_expr(0)

    def _parse_binary_expr(self, min_precedence: int) -> Expression:
        """Parse binary expressions with precedence climbing."""
        left = self._parse_unary_expr()

        while True:
            op_token = self._current()
            precedence = self.PRECEDENCE.get(op_token.type)

            if precedence is None or precedence < min_precedence:
                break

            self._advance()  # consume operator
            right = self._parse_binary_expr(precedence + 1)

            if op_token.type in self.LOGICAL_OPERATORS:
                node_class = LogicalOp
            elif op_token.type in self.RELATIONAL_OPERATORS:
                node_class = RelationalOp
            else:
                node_class = BinaryOp
            left = node_class(
                span=SourceSpan(left.span.start, right.span.end),
                left=left,
                operator=op_token.type,
                right=right
            )

        return left

    def _parse_unary_expr(self) -> Expression:
        """Parse unary expressions (!, -)."""
        if self._check_any(TokenType.NOT, TokenType.MINUS):
            op = self._advance()
            with self._nested():
                operand = self._parse_unary_expr()
            return UnaryOp(
                span=SourceSpan(op.span.start, operand.span.end),
                operator=op.type,
                operand=operand
            )

        return self._parse_postfix_expr()

    def _parse_postfix_expr(self) -> Expression:
        """Parse postfix expressions (calls, field access, indexing)."""
        expr = self._parse_primary_expr()

        while True:
            if self._check(TokenType.LPAREN):
                expr = self._parse_call(expr)
            elif self._check(TokenType.DOT):
                self._advance()  # consume '.'
                member = self._consume(TokenType.IDENTIFIER, "field or method name").value

                if self._check(TokenType.LPAREN):
                    # Uniform call syntax: a.f(x) is f(a, x)
                    args = self._parse_arguments()
                    expr = FunctionCall(
                        span=SourceSpan(expr.span.start, self.tokens[self.pos - 1].span.end),
                        name=member,
                        arguments=[expr] + args,
                        method_call=True
                    )
                else:
                    expr = DotAccess(
                        span=SourceSpan(expr.span.start, self.tokens[self.pos - 1].span.end),
                        object=expr,
                        member=member
                    )
            elif self._check(TokenType.LBRACKET):
                self._advance()  # consume '['
                index = self._parse_expression()
                self._consume(TokenType.RBRACKET, "']'")
                expr = IndexAccess(
                    span=SourceSpan(expr.span.start, self.tokens[self.pos - 1].span.end),
                    target=expr,
                    index=index
                )
            else:
                break

        return expr

    def _parse_call(self, callee: Expression) -> Expression:
        """Parse a call on a name; capitalized names construct structs."""
        if not isinstance(callee, Identifier):
            self._error("operator or end of expression")
        args = self._parse_arguments()
        span = SourceSpan(callee.span.start, self.tokens[self.pos - 1].span.end)
        if callee.name[:1].isupper():
            return StructInit(span=span, type_name=callee.name, arguments=args)
        return FunctionCall(span=span, name=callee.name, arguments=args)

    def _parse_arguments(self) -> List[Expression]:
        """Parse a parenthesized, comma-separated argument list."""
        self._consume(TokenType.LPAREN, "'('")
        args = self._parse_expression_list(TokenType.RPAREN)
        self._consume(TokenType.RPAREN, "')'")
        return args

    def _parse_expression_list(self, closing: TokenType) -> List[Expression]:
        """Parse expressions up to (not including) the closing token."""
        items = []
        self._skip_newlines()
        if not self._check(closing):
            items.append(self._parse_expression())
            self._skip_newlines()
            while self._match(TokenType.COMMA):
                self._skip_newlines()
                if self._check(closing):
                    break  # Allow trailing comma
                items.append(self._parse_expression())
                self._skip_newlines()
        return items

    def _parse_number(self, token: Token) -> Literal:
        """Number literals are integers when they parse as one, else doubles."""
        try:
            value = int(token.value)
        except ValueError:
            try:
                value = float(token.value)
            except ValueError:
                raise error_invalid_number(token.value, token.span) from None
        return Literal(span=token.span, value=value, literal_type=TokenType.NUMBER)

    def _parse_primary_expr(self) -> Expression:
        """Parse primary expressions (literals, identifiers, grouped, arrays)."""
        token = self._current()

        if token.type == TokenType.NUMBER:
            self._advance()
            return self._parse_number(token)

        if token.type in (TokenType.STRING, TokenType.BOOLEAN):
            self._advance()
            return Literal(span=token.span, value=token.value, literal_type=token.type)

        if token.type == TokenType.IDENTIFIER:
            self._advance()
            return Identifier(span=token.span, name=token.value)

        if token.type == TokenType.LPAREN:
            self._advance()
            expr = self._parse_expression()
            self._consume(TokenType.RPAREN, "')'")
            return expr

        if token.type == TokenType.LBRACKET:
            return self._parse_array_literal()

        if token.type == TokenType.EOF:
            raise error_unexpected_eof("expression", token.span)
        raise error_invalid_expression(str(token), token.span)

    def _parse_array_literal(self) -> ArrayLiteral:
        """Parse an array literal (e.g., [1, 2, 3])."""
        start = self._advance()  # consume '['
        elements = self._parse_expression_list(TokenType.RBRACKET)
        self._consume(TokenType.RBRACKET, "']'")
        return ArrayLiteral(
            span=self._span_from(start),
            elements=elements,
            init_capacity=len(elements),
        )

    # =========================================================================
    # Statement Parsing
    # =========================================================================

    def _parse_statement(self) -> Statement:
        """Parse a single statement."""
        token = self._current()

        if token.type in (TokenType.CONST, TokenType.VAR):
            self._advance()
            return self._parse_declaration(token, mutable=token.type == TokenType.VAR)

        if (token.type == TokenType.IDENTIFIER and
                self._peek(1).type in (TokenType.COLON_ASSIGN, TokenType.COLON)):
            return self._parse_declaration(token, mutable=False)

        if token.type == TokenType.STRUCT:
            return self._parse_struct_decl()

        if token.type == TokenType.IF:
            return self._parse_if_statement()

        if token.type == TokenType.REPEAT:
            return self._parse_repeat_statement()

        if token.type in (TokenType.BREAK, TokenType.RETURN):
            return self._parse_exit_statement()

        if token.type == TokenType.LBRACE:
            return self._parse_brace_block()

        return self._parse_expression_statement()

    def _parse_statements(self, closing: TokenType) -> List[Statement]:
        """Parse delimited statements up to the closing token."""
        statements = []
        self._skip_separators()
        while not self._check(closing) and not self._is_at_end():
            statements.append(self._parse_statement())
            self._expect_statement_end()
            self._skip_separators()
        return statements

    def _parse_brace_block(self) -> Block:
        """Parse a brace-delimited block."""
        start = self._consume(TokenType.LBRACE, "'{'")
        with self._nested():
            statements = self._parse_statements(TokenType.RBRACE)
        self._consume(TokenType.RBRACE, "'}'")
        return Block(span=self._span_from(start), statements=statements)

    def _parse_expression_statement(self) -> Statement:
        """Parse an expression statement or an assignment."""
        start = self._current()
        expr = self._parse_expression()

        if self._match(TokenType.ASSIGN):
            if not isinstance(expr, (Identifier, IndexAccess, DotAccess)):
                raise error_invalid_assignment_target(expr.span)
            value = self._parse_expression()
            return Assignment(span=self._span_from(start), target=expr, value=value)

        return ExpressionStatement(span=expr.span, expression=expr)

    def _parse_exit_statement(self) -> Statement:
        """Parse 'break [value]' or 'return [value]'."""
        start = self._advance()
        value = None
        if not self._check_any(*self.STATEMENT_END):
            value = self._parse_expression()
        node_class = BreakStatement if start.type == TokenType.BREAK else ReturnStatement
        return node_class(span=self._span_from(start), value=value)

    def _parse_if_statement(self) -> IfStatement:
        """Parse 'if cond { } [else ...]'."""
        start = self._advance()  # consume 'if'
        condition = self._parse_expression()
        body = self._parse_brace_block()
        else_branch = self._parse_else_clause()
        return IfStatement(
            span=self._span_from(start),
            condition=condition,
            body=body,
            else_branch=else_branch
        )

    def _parse_else_clause(self) -> Optional[ElseClause]:
        """Parse an optional else clause; newlines are skipped only if 'else' follows."""
        offset = 0
        while self._check_ahead(TokenType.NEWLINE, offset):
            offset += 1
        if not self._check_ahead(TokenType.ELSE, offset):
            return None
        self._skip_newlines()
        start = self._advance()  # consume 'else'
        self._match(TokenType.IF)

        condition = None
        if not self._check(TokenType.LBRACE):
            condition = self._parse_expression()
        body = self._parse_brace_block()
        with self._nested():
            else_branch = self._parse_else_clause()
        return ElseClause(
            span=self._span_from(start),
            condition=condition,
            body=body,
            else_branch=else_branch
        )

    def _parse_repeat_statement(self) -> RepeatStatement:
        """Parse 'repeat { }' or 'repeat counter <condition> { }'."""
        start = self._advance()  # consume 'repeat'

        if self._check(TokenType.LBRACE):
            body = self._parse_brace_block()
            return RepeatStatement(
                span=self._span_from(start), iterator=None, condition=None, body=body
            )

        # The counter name stays in place as the start of the condition
        iterator = self._current()
        if iterator.type != TokenType.IDENTIFIER:
            self._error("counter name or '{'")
        condition = self._parse_expression()
        body = self._parse_brace_block()
        return RepeatStatement(
            span=self._span_from(start),
            iterator=iterator.value,
            condition=condition,
            body=body
        )

    # =========================================================================
    # Declaration Parsing
    # =========================================================================

    def _parse_declaration(self, start: Token, mutable: bool) -> Statement:
        """Parse 'name := value', 'name : Type [= value]' or a function declaration."""
        name = self._consume(TokenType.IDENTIFIER, "variable name").value

        if self._match(TokenType.COLON_ASSIGN):
            if self._at_function_literal():
                function = self._parse_function_literal(self._current())
                return FunctionDecl(
                    span=self._span_from(start), name=name, function=function, mutable=mutable
                )
            value = self._parse_expression()
            return self._make_declaration(start, name, None, value, mutable)

        if not self._match(TokenType.COLON):
            self._error("':=' or ':'")
        type_name = self._consume(TokenType.IDENTIFIER, "type name").value

        if type_name == "Fn" and self._check_any(TokenType.LPAREN, TokenType.LBRACE):
            function = self._parse_function_literal(self._current())
            return FunctionDecl(
                span=self._span_from(start), name=name, function=function, mutable=mutable
            )

        value = None
        if self._match(TokenType.ASSIGN):
            value = self._parse_expression()
        elif not self._check_any(*self.STATEMENT_END):
            self._error("'=' or end of declaration")
        return self._make_declaration(start, name, type_name, value, mutable)

    def _make_declaration(self, start: Token, name: str, type_name: Optional[str],
                          value: Optional[Expression], mutable: bool) -> Declaration:
        # A literal array takes the mutability of the binding it initializes
        if isinstance(value, ArrayLiteral):
            value.mutable = mutable
        return Declaration(
            span=self._span_from(start),
            name=name,
            type_name=type_name,
            value=value,
            mutable=mutable
        )

    def _at_function_literal(self) -> bool:
        """Check whether a ':=' right-hand side is a function literal."""
        if self._check(TokenType.LBRACE):
            return True
        if not self._check(TokenType.LPAREN):
            return False
        if self._check_ahead(TokenType.RPAREN):
            return self._peek(2).type in (TokenType.LBRACE, TokenType.ARROW)
        return (self._check_ahead(TokenType.IDENTIFIER) and
                self._peek(2).type in (TokenType.COLON, TokenType.COLON_ASSIGN, TokenType.ASSIGN))

    def _parse_function_literal(self, start: Token) -> FunctionLiteral:
        """Parse '[(params)] [-> Type] { body }'."""
        parameters = []
        if self._match(TokenType.LPAREN):
            self._skip_newlines()
            if not self._check(TokenType.RPAREN):
                parameters.append(self._parse_parameter())
                self._skip_newlines()
                while self._match(TokenType.COMMA):
                    self._skip_newlines()
                    parameters.append(self._parse_parameter())
                    self._skip_newlines()
            self._consume(TokenType.RPAREN, "')'")

        return_type = "Dynamic"
        if self._match(TokenType.ARROW):
            return_type = self._consume(TokenType.IDENTIFIER, "return type").value

        body = self._parse_brace_block()
        return FunctionLiteral(
            span=self._span_from(start),
            parameters=parameters,
            return_type=return_type,
            body=body
        )

    def _parse_parameter(self) -> Parameter:
        """Parse a function parameter: exactly 'name: Type'."""
        start = self._current()
        name = self._consume(TokenType.IDENTIFIER, "parameter name").value

        if self._check_any(TokenType.COLON_ASSIGN, TokenType.ASSIGN):
            raise error_default_parameter(name, self._current().span)
        self._consume(TokenType.COLON, "':'")
        type_name = self._consume(TokenType.IDENTIFIER, "parameter type").value
        if self._check(TokenType.ASSIGN):
            raise error_default_parameter(name, self._current().span)

        return Parameter(span=self._span_from(start), name=name, type_name=type_name)

    def _parse_struct_decl(self) -> StructDecl:
        """Parse 'struct Name { field declarations }'."""
        start = self._advance()  # consume 'struct'
        name = self._consume(TokenType.IDENTIFIER, "struct name").value
        self._consume(TokenType.LBRACE, "'{'")

        fields = []
        with self._nested():
            self._skip_separators()
            while not self._check(TokenType.RBRACE) and not self._is_at_end():
                member = self._parse_statement()
                if not isinstance(member, Declaration):
                    raise error_invalid_struct_member(member.span)
                fields.append(member)
                self._expect_statement_end()
                self._skip_separators()
        self._consume(TokenType.RBRACE, "'}'")

        return StructDecl(span=self._span_from(start), name=name, fields=fields)

    def parse_program(self) -> Program:
        """Parse a complete source unit."""
        start = self._current()
        statements = self._parse_statements(TokenType.EOF)
        self._consume(TokenType.EOF, "end of input")
        logger.debug("parsed %s: %d statements", self.filename or "<source>", len(statements))
        return Program(
            span=self._span_from(start),
            statements=statements,
            filename=self.filename
        )


def parse(tokens: List[Token], filename: Optional[str] = None,
          max_depth: int = DEFAULT_MAX_DEPTH) -> Program:
    """
    Convenience function to parse tokens into a program.

    Args:
        tokens: List of tokens from the lexer
        filename: Optional filename for error messages
        max_depth: Nesting bound for expressions and blocks

    Returns:
        Parsed Program AST

    Raises:
        ParseError: If parsing fails
        RecursionLimitExceeded: If nesting exceeds max_depth
    """
    parser = Parser(tokens, filename, max_depth)
    return parser.parse_program()


def parse_source(source: str, filename: Optional[str] = None,
                 max_depth: int = DEFAULT_MAX_DEPTH) -> Program:
    """Tokenize and parse source text in one step."""
    return parse(tokenize(source, filename), filename, max_depth)

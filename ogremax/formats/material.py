"""
Parser for Ogre ``.material`` scripts.

The grammar is block structured::

    material Name
    {
        technique
        {
            pass
            {
                diffuse 1 0 0
                specular 1 1 1 1 40
                texture_unit
                {
                    texture wall.png
                }
            }
        }
    }

Commands are line oriented: a keyword followed by its arguments up to the
end of the line. Braces are separate tokens and may share a line with a
keyword. ``//`` starts a comment. Unknown commands and blocks are skipped.

Only the first pass of the first technique is turned into a
MaterialDescriptor. Textures are assigned by order of appearance across
all texture units of that pass: the first is the diffuse map, the second
the emissive map.
"""

from dataclasses import dataclass
import logging
import math
from typing import List, Optional, Tuple

from ..core.constants import DEFAULT_SHININESS, EMISSIVE_MAP_COLOR
from ..core.errors import MaterialParseError
from ..core.types import Color, TextureResolver
from .records import BlendMode, MaterialDescriptor, MaterialLibrary

logger = logging.getLogger(__name__)

OPEN = '{'
CLOSE = '}'


# =============================================================================
# Tokenizer
# =============================================================================

@dataclass(frozen=True)
class Token:
    value: str
    line: int


def tokenize(text: str) -> List[Token]:
    """
    Split a material script into tokens.

    Args:
        text: Script source

    Returns:
        Tokens with their 1-based line numbers; comments removed
    """
    tokens = []
    for number, line in enumerate(text.splitlines(), start=1):
        comment = line.find('//')
        if comment >= 0:
            line = line[:comment]
        line = line.replace(OPEN, f' {OPEN} ').replace(CLOSE, f' {CLOSE} ')
        tokens.extend(Token(word, number) for word in line.split())
    return tokens


# =============================================================================
# Parser
# =============================================================================

def default_texture_resolver(name: str, texture_path: str) -> str:
    """Resolve a texture to its path string."""
    if not texture_path or texture_path.endswith('/'):
        return f'{texture_path}{name}'
    return f'{texture_path}/{name}'


class _PassState:
    """Mutable accumulator for one pass."""

    def __init__(self, name: str):
        self.material = MaterialDescriptor(name=name)
        self.textures: List[str] = []
        self.emissive_authored = False


class MaterialScriptParser:
    """
    Recursive descent parser over a token list.

    Args:
        text: Script source
        texture_path: Base path handed to the texture resolver
        texture_resolver: ``(name, texture_path) -> handle``
    """

    def __init__(
        self,
        text: str,
        texture_path: str = '',
        texture_resolver: Optional[TextureResolver] = None,
    ):
        self.tokens = tokenize(text)
        self.position = 0
        self.texture_path = texture_path
        self.texture_resolver = texture_resolver or default_texture_resolver

    # -------------------------------------------------------------------------
    # Cursor helpers
    # -------------------------------------------------------------------------

    def _peek(self) -> Optional[Token]:
        if self.position < len(self.tokens):
            return self.tokens[self.position]
        return None

    def _next(self) -> Optional[Token]:
        token = self._peek()
        if token is not None:
            self.position += 1
        return token

    def _last_line(self) -> int:
        return self.tokens[-1].line if self.tokens else 0

    def _statement(self) -> Tuple[Token, List[str]]:
        """Consume a keyword and the arguments that follow it on the same line."""
        keyword = self._next()
        if keyword.value == OPEN:
            raise MaterialParseError(f"Unexpected '{OPEN}'", line=keyword.line)
        args = []
        while True:
            token = self._peek()
            if token is None or token.line != keyword.line or token.value in (OPEN, CLOSE):
                break
            args.append(self._next().value)
        return keyword, args

    def _expect_open(self, keyword: Token) -> None:
        token = self._next()
        if token is None:
            raise MaterialParseError(
                f"Unexpected end of input, expected '{OPEN}' after '{keyword.value}'",
                line=self._last_line(),
            )
        if token.value != OPEN:
            raise MaterialParseError(
                f"Expected '{OPEN}' after '{keyword.value}' but got '{token.value}'",
                line=token.line,
            )

    def _at_block_end(self, opener: Token) -> bool:
        """True when the next token closes the current block; EOF is an error."""
        token = self._peek()
        if token is None:
            raise MaterialParseError(
                f"Unexpected end of input, expected '{CLOSE}' closing '{opener.value}' "
                f"opened on line {opener.line}",
                line=self._last_line(),
            )
        if token.value == CLOSE:
            self._next()
            return True
        return False

    def _opens_block(self) -> bool:
        token = self._peek()
        return token is not None and token.value == OPEN

    def _skip_block(self, opener: Token) -> None:
        """Skip a balanced ``{ ... }`` block whose '{' is the next token."""
        self._expect_open(opener)
        depth = 1
        while depth:
            token = self._next()
            if token is None:
                raise MaterialParseError(
                    f"Unexpected end of input, expected '{CLOSE}' closing '{opener.value}' "
                    f"opened on line {opener.line}",
                    line=self._last_line(),
                )
            if token.value == OPEN:
                depth += 1
            elif token.value == CLOSE:
                depth -= 1

    def _skip_statement(self, keyword: Token) -> None:
        if self._opens_block():
            self._skip_block(keyword)
        else:
            logger.debug(f"Ignoring material command '{keyword.value}' (line {keyword.line})")

    # -------------------------------------------------------------------------
    # Grammar
    # -------------------------------------------------------------------------

    def parse(self) -> MaterialLibrary:
        library = MaterialLibrary()
        while self._peek() is not None:
            token = self._peek()
            if token.value == CLOSE:
                raise MaterialParseError(f"Unexpected '{CLOSE}'", line=token.line)

            keyword, args = self._statement()
            if keyword.value == 'material':
                material = self._parse_material(keyword, args)
                if material.name in library:
                    logger.warning(f"Material {material.name!r} defined twice, keeping the last one")
                library.add(material)
            else:
                self._skip_statement(keyword)
        return library

    def _parse_material(self, keyword: Token, args: List[str]) -> MaterialDescriptor:
        if not args or args[0] == ':':
            raise MaterialParseError("Material without a name", line=keyword.line)
        name = args[0]
        self._expect_open(keyword)

        material = None
        while not self._at_block_end(keyword):
            statement, _ = self._statement()
            if statement.value == 'technique':
                technique = self._parse_technique(statement, name)
                if material is None:
                    material = technique
            else:
                self._skip_statement(statement)

        return material if material is not None else MaterialDescriptor(name=name)

    def _parse_technique(self, keyword: Token, name: str) -> Optional[MaterialDescriptor]:
        self._expect_open(keyword)

        material = None
        while not self._at_block_end(keyword):
            statement, _ = self._statement()
            if statement.value == 'pass':
                parsed = self._parse_pass(statement, name)
                if material is None:
                    material = parsed
            else:
                self._skip_statement(statement)
        return material

    def _parse_pass(self, keyword: Token, name: str) -> MaterialDescriptor:
        self._expect_open(keyword)
        state = _PassState(name)
        material = state.material

        while not self._at_block_end(keyword):
            statement, args = self._statement()
            command = statement.value

            if command == 'texture_unit':
                self._parse_texture_unit(statement, state)
            elif self._opens_block():
                self._skip_block(statement)
            elif command in ('diffuse', 'ambient'):
                color = self._color(statement, args)
                if color is not None:
                    material.base_color = color[:3]
                    if len(color) > 3 and color[3] < 1.0:
                        material.opacity = color[3]
                        material.transparent = True
            elif command == 'specular':
                color = self._color(statement, args)
                if color is not None:
                    material.specular_color = color[:3]
                    material.shininess = self._shininess(args)
            elif command == 'emissive':
                color = self._color(statement, args)
                if color is not None:
                    material.emissive_color = color[:3]
                    state.emissive_authored = True
            elif command == 'scene_blend':
                material.blend_mode, material.transparent = self._blend(args, material.transparent)
            else:
                logger.debug(f"Ignoring pass command '{command}' (line {statement.line})")

        self._assign_textures(state)
        return material

    def _parse_texture_unit(self, keyword: Token, state: _PassState) -> None:
        self._expect_open(keyword)
        while not self._at_block_end(keyword):
            statement, args = self._statement()
            if self._opens_block():
                self._skip_block(statement)
            elif statement.value == 'texture':
                if not args:
                    raise MaterialParseError("texture without a file name", line=statement.line)
                state.textures.append(args[0])

    # -------------------------------------------------------------------------
    # Values
    # -------------------------------------------------------------------------

    def _color(self, keyword: Token, args: List[str]) -> Optional[Tuple[float, ...]]:
        if args and args[0] == 'vertexcolour':
            logger.warning(f"'{keyword.value} vertexcolour' is not supported (line {keyword.line})")
            return None

        values = []
        for arg in args[:4]:
            try:
                values.append(float(arg))
            except ValueError:
                break

        if len(values) < 3 or not all(math.isfinite(v) for v in values):
            raise MaterialParseError(
                f"'{keyword.value}' expects at least three numbers, got {' '.join(args)!r}",
                line=keyword.line,
            )
        return tuple(values)

    @staticmethod
    def _shininess(args: List[str]) -> float:
        # specular r g b [a] shininess
        if len(args) >= 5:
            raw = args[4]
        elif len(args) == 4:
            raw = args[3]
        else:
            return DEFAULT_SHININESS
        try:
            value = float(raw)
        except ValueError:
            return DEFAULT_SHININESS
        return value if math.isfinite(value) else DEFAULT_SHININESS

    @staticmethod
    def _blend(args: List[str], transparent: bool) -> Tuple[BlendMode, bool]:
        mode = ' '.join(args)
        if mode in ('add', 'one one'):
            return BlendMode.ADDITIVE, True
        if mode in ('modulate', 'dest_colour zero'):
            return BlendMode.MULTIPLY, True
        if mode in ('replace', 'one zero'):
            return BlendMode.NORMAL, transparent
        return BlendMode.NORMAL, True

    def _assign_textures(self, state: _PassState) -> None:
        material = state.material
        textures = state.textures
        if textures:
            material.diffuse_map = self.texture_resolver(textures[0], self.texture_path)
        if len(textures) > 1:
            material.emissive_map = self.texture_resolver(textures[1], self.texture_path)
            material.emissive_intensity = 1.0
            if not state.emissive_authored:
                material.emissive_color = EMISSIVE_MAP_COLOR
        if len(textures) > 2:
            logger.debug(f"Material {material.name!r}: ignoring {len(textures) - 2} extra textures")


def parse_material_script(
    text: str,
    texture_path: str = '',
    texture_resolver: Optional[TextureResolver] = None,
) -> MaterialLibrary:
    """
    Parse a ``.material`` script.

    Args:
        text: Script source
        texture_path: Base path handed to the texture resolver
        texture_resolver: ``(name, texture_path) -> handle``; defaults to
            joining the two into a path string

    Returns:
        MaterialLibrary in declaration order

    Raises:
        MaterialParseError: On a missing or unmatched brace (reports the
            line) or a malformed color
    """
    library = MaterialScriptParser(text, texture_path, texture_resolver).parse()
    logger.debug(f"Parsed {len(library)} materials")
    return library

"""
Tests for the material script tokenizer and parser.
"""

import logging

import pytest

from ogremax.core.constants import DEFAULT_SHININESS, EMISSIVE_MAP_COLOR
from ogremax.core.errors import ErrorCode, MaterialParseError
from ogremax.formats.material import parse_material_script, tokenize
from ogremax.formats.records import BlendMode

from conftest import MATERIAL_SCRIPT


def _pass(body):
    return f"material M\n{{\n technique\n {{\n  pass\n  {{\n{body}\n  }}\n }}\n}}\n"


def _material(body, **kwargs):
    return parse_material_script(_pass(body), **kwargs)['M']


# =============================================================================
# Tokenizer
# =============================================================================

class TestTokenize:
    """Tests for tokenize."""

    def test_braces_are_separate_tokens(self):
        """Braces split from adjacent words."""
        tokens = tokenize('pass{diffuse 1 0 0}')
        assert [t.value for t in tokens] == ['pass', '{', 'diffuse', '1', '0', '0', '}']

    def test_comments_removed_and_lines_counted(self):
        """// comments are dropped; line numbers are 1-based."""
        tokens = tokenize('// header\nmaterial A // trailing\n{\n}')
        assert [(t.value, t.line) for t in tokens] == [('material', 2), ('A', 2), ('{', 3), ('}', 4)]


# =============================================================================
# Library
# =============================================================================

class TestLibrary:
    """Tests for whole scripts."""

    def test_level_script(self):
        """Both materials are parsed in declaration order."""
        library = parse_material_script(MATERIAL_SCRIPT)
        assert library.names == ['Robot/Body', 'Crate']

        robot = library['Robot/Body']
        assert robot.base_color == (1.0, 0.0, 0.0)
        assert robot.specular_color == (1.0, 1.0, 1.0)
        assert robot.shininess == 40.0

        crate = library['Crate']
        assert crate.base_color == (0.5, 0.4, 0.3)
        assert crate.blend_mode == BlendMode.ADDITIVE
        assert crate.transparent

    def test_empty_script(self):
        """An empty script gives an empty library."""
        assert len(parse_material_script('// nothing here\n')) == 0

    def test_duplicate_name_keeps_last(self, caplog):
        """A redefined material replaces the earlier one with a warning."""
        script = 'material A\n{\n}\nmaterial A\n{\n technique\n {\n  pass\n  {\n   diffuse 0 1 0\n  }\n }\n}\n'
        with caplog.at_level(logging.WARNING, logger='ogremax.formats.material'):
            library = parse_material_script(script)
        assert len(library) == 1
        assert library['A'].base_color == (0.0, 1.0, 0.0)
        assert 'defined twice' in caplog.text

    def test_unknown_blocks_are_skipped(self):
        """Unknown top-level and pass-level blocks are skipped whole."""
        script = (
            'vertex_program VP glsl\n{\n source vp.glsl\n default_params\n {\n  param_named x float 1\n }\n}\n'
            + _pass('   vertex_program_ref VP\n   {\n   }\n   diffuse 0 0 1')
        )
        library = parse_material_script(script)
        assert library.names == ['M']
        assert library['M'].base_color == (0.0, 0.0, 1.0)

    def test_only_first_pass_and_technique(self):
        """Later passes and techniques are ignored."""
        script = (
            'material M\n{\n technique\n {\n  pass\n  {\n   diffuse 1 0 0\n  }\n'
            '  pass\n  {\n   diffuse 0 1 0\n  }\n }\n'
            ' technique\n {\n  pass\n  {\n   diffuse 0 0 1\n  }\n }\n}\n'
        )
        assert parse_material_script(script)['M'].base_color == (1.0, 0.0, 0.0)

    def test_material_without_technique(self):
        """A material with no technique keeps every default."""
        material = parse_material_script('material Plain\n{\n}\n')['Plain']
        assert material.shininess == DEFAULT_SHININESS
        assert material.diffuse_map is None


# =============================================================================
# Pass Commands
# =============================================================================

class TestPassCommands:
    """Tests for color, shininess and blend commands."""

    @pytest.mark.parametrize("command,shininess", [
        ("specular 1 1 1 1 12", 12.0),
        ("specular 1 1 1 7", 7.0),
        ("specular 1 1 1", DEFAULT_SHININESS),
        ("specular 1 1 1 1 0", 0.0),
    ])
    def test_shininess(self, command, shininess):
        """Shininess is the fifth argument, or the fourth when only four are given."""
        assert _material(command).shininess == shininess

    def test_diffuse_alpha_sets_opacity(self):
        """A diffuse alpha below one makes the material transparent."""
        material = _material('diffuse 1 1 1 0.5')
        assert material.opacity == 0.5
        assert material.transparent

    def test_emissive_color(self):
        """emissive sets the emissive color."""
        assert _material('emissive 0.1 0.2 0.3').emissive_color == (0.1, 0.2, 0.3)

    @pytest.mark.parametrize("blend,mode,transparent", [
        ("add", BlendMode.ADDITIVE, True),
        ("one one", BlendMode.ADDITIVE, True),
        ("modulate", BlendMode.MULTIPLY, True),
        ("dest_colour zero", BlendMode.MULTIPLY, True),
        ("replace", BlendMode.NORMAL, False),
        ("alpha_blend", BlendMode.NORMAL, True),
    ])
    def test_scene_blend(self, blend, mode, transparent):
        """scene_blend maps onto a blend mode."""
        material = _material(f'scene_blend {blend}')
        assert material.blend_mode == mode
        assert material.transparent is transparent

    @pytest.mark.parametrize("command", ["diffuse 1 0", "diffuse a b c", "specular nan 0 0", "ambient"])
    def test_malformed_color(self, command):
        """Colors need three finite numbers."""
        with pytest.raises(MaterialParseError) as exc_info:
            _material(command)
        assert exc_info.value.code == ErrorCode.FORMAT
        assert exc_info.value.line == 7

    def test_vertexcolour_is_ignored(self, caplog):
        """Vertex color tracking is reported and skipped."""
        with caplog.at_level(logging.WARNING, logger='ogremax.formats.material'):
            material = _material('diffuse vertexcolour')
        assert material.base_color == (1.0, 1.0, 1.0)
        assert 'vertexcolour' in caplog.text

    def test_unknown_commands_are_ignored(self):
        """Commands the parser does not know are skipped."""
        material = _material('lighting off\n depth_write off\n diffuse 0.2 0.2 0.2')
        assert material.base_color == (0.2, 0.2, 0.2)


# =============================================================================
# Textures
# =============================================================================

class TestTextures:
    """Tests for ordinal texture assignment."""

    def test_first_texture_is_diffuse_second_is_emissive(self):
        """Textures are assigned by order of appearance."""
        robot = parse_material_script(MATERIAL_SCRIPT, texture_path='maps')['Robot/Body']
        assert robot.diffuse_map == 'maps/robot_diffuse.png'
        assert robot.emissive_map == 'maps/robot_glow.png'
        assert robot.emissive_intensity == 1.0
        assert robot.emissive_color == EMISSIVE_MAP_COLOR

    def test_authored_emissive_is_kept(self):
        """An authored emissive color survives an emissive map."""
        material = _material(
            '   emissive 0.5 0 0\n'
            '   texture_unit\n   {\n    texture a.png\n   }\n'
            '   texture_unit\n   {\n    texture b.png\n   }'
        )
        assert material.emissive_color == (0.5, 0.0, 0.0)
        assert material.emissive_map == 'b.png'

    def test_single_texture(self):
        """One texture only fills the diffuse map."""
        material = _material('   texture_unit\n   {\n    texture a.png\n    tex_address_mode clamp\n   }')
        assert material.diffuse_map == 'a.png'
        assert material.emissive_map is None
        assert material.emissive_intensity is None

    def test_custom_resolver(self):
        """The resolver receives the name and the texture path."""
        calls = []

        def resolver(name, path):
            calls.append((name, path))
            return {'texture': name}

        material = _material('   texture_unit\n   {\n    texture a.png\n   }', texture_path='tex/', texture_resolver=resolver)
        assert material.diffuse_map == {'texture': 'a.png'}
        assert calls == [('a.png', 'tex/')]

    def test_texture_without_name(self):
        """texture with no argument is an error."""
        with pytest.raises(MaterialParseError):
            _material('   texture_unit\n   {\n    texture\n   }')


# =============================================================================
# Brace Errors
# =============================================================================

class TestBraceErrors:
    """Tests for unmatched braces."""

    def test_unterminated_pass_reports_line(self):
        """A missing '}' fails at end of input with the last line."""
        script = 'material M\n{\n technique\n {\n  pass\n  {\n   diffuse 1 0 0\n'
        with pytest.raises(MaterialParseError) as exc_info:
            parse_material_script(script)
        assert exc_info.value.line == 7
        assert 'line 7' in str(exc_info.value)

    def test_missing_open_brace(self):
        """A block keyword not followed by '{' fails on the offending line."""
        with pytest.raises(MaterialParseError) as exc_info:
            parse_material_script('material M\ntechnique\n')
        assert exc_info.value.line == 2

    def test_stray_close_brace(self):
        """A '}' at top level is an error."""
        with pytest.raises(MaterialParseError) as exc_info:
            parse_material_script('material M\n{\n}\n}\n')
        assert exc_info.value.line == 4

    def test_material_without_name(self):
        """A material needs a name."""
        with pytest.raises(MaterialParseError):
            parse_material_script('material\n{\n}\n')

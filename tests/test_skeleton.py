"""
Tests for skeleton and animation parsing.
"""

import logging
import math

import numpy as np
import pytest

from ogremax.core.errors import FormatError, IndexRangeError, StructuralError
from ogremax.formats.records import TrackChannel
from ogremax.formats.skeleton import parse_skeleton
from ogremax.utils.elements import parse_xml
from ogremax.utils.quaternion import quaternion_from_axis_angle


def _skeleton(bones, hierarchy='', animations=''):
    return parse_xml(
        f'<skeleton><bones>{bones}</bones><bonehierarchy>{hierarchy}</bonehierarchy>'
        f'<animations>{animations}</animations></skeleton>'
    )


def _bone(bone_id, name, x=0):
    return f'<bone id="{bone_id}" name="{name}"><position x="{x}" y="0" z="0"/></bone>'


def _animation(tracks, length='1.0', extra=''):
    return f'<animation name="clip" length="{length}" {extra}><tracks>{tracks}</tracks></animation>'


def _track(bone, keyframes):
    return f'<track bone="{bone}"><keyframes>{keyframes}</keyframes></track>'


def _keyframe(time, y=0):
    return f'<keyframe time="{time}"><translate x="0" y="{y}" z="0"/></keyframe>'


# =============================================================================
# Bones
# =============================================================================

class TestBones:
    """Tests for bone ordering and hierarchy."""

    def test_ordered_by_declared_id(self, skeleton_root):
        """Bones declared C(2), A(0), B(1) come out as A, B, C."""
        skeleton = parse_skeleton(skeleton_root)
        assert skeleton.bone_names == ['A', 'B', 'C']
        assert [bone.index for bone in skeleton.bones] == [0, 1, 2]

    def test_parent_links(self, skeleton_root):
        """Parent indices follow <bonehierarchy>."""
        skeleton = parse_skeleton(skeleton_root)
        assert [bone.parent for bone in skeleton.bones] == [-1, 0, 0]
        assert sorted(skeleton.bones[0].children) == [1, 2]
        assert skeleton.parent_of('C').name == 'A'
        assert skeleton.parent_of('A') is None
        assert [bone.name for bone in skeleton.roots()] == ['A']

    def test_rest_pose(self, skeleton_root):
        """Bone transforms hold the authored rest pose."""
        skeleton = parse_skeleton(skeleton_root)
        assert np.allclose(skeleton.bone_by_name('C').transform.translation, [0, 2, 0])
        assert np.allclose(skeleton.bone_by_name('B').transform.rotation, [1, 0, 0, 0])

    def test_unknown_names_in_hierarchy_are_ignored(self):
        """Links naming missing bones are skipped."""
        skeleton = parse_skeleton(_skeleton(
            _bone(0, 'A') + _bone(1, 'B'),
            '<boneparent bone="B" parent="Nope"/><boneparent bone="Ghost" parent="A"/>',
        ))
        assert [bone.parent for bone in skeleton.bones] == [-1, -1]

    def test_cyclic_link_is_skipped(self, caplog):
        """A link that would close a cycle is ignored with a warning."""
        root = _skeleton(
            _bone(0, 'A') + _bone(1, 'B'),
            '<boneparent bone="B" parent="A"/><boneparent bone="A" parent="B"/>',
        )
        with caplog.at_level(logging.WARNING, logger='ogremax.formats.skeleton'):
            skeleton = parse_skeleton(root)
        assert [bone.parent for bone in skeleton.bones] == [-1, 0]
        assert 'cyclic' in caplog.text

    def test_reparenting_moves_child(self):
        """A second link for the same bone replaces the first."""
        skeleton = parse_skeleton(_skeleton(
            _bone(0, 'A') + _bone(1, 'B') + _bone(2, 'C'),
            '<boneparent bone="C" parent="A"/><boneparent bone="C" parent="B"/>',
        ))
        assert skeleton.bones[2].parent == 1
        assert skeleton.bones[0].children == []
        assert skeleton.bones[1].children == [2]

    @pytest.mark.parametrize("bones", [
        _bone(0, 'A') + _bone(2, 'B'),
        _bone(1, 'A'),
        _bone(0, 'A') + _bone(0, 'B'),
        _bone(0, 'A') + _bone(1, 'A'),
        '<bone name="A"/>',
        '<bone id="0"/>',
        '<bone id="-1" name="A"/>',
    ])
    def test_invalid_ids_and_names(self, bones):
        """Sparse, duplicate or missing ids and names are Format errors."""
        with pytest.raises(FormatError):
            parse_skeleton(_skeleton(bones))

    @pytest.mark.parametrize("xml_text", [
        '<skeleton><bones/></skeleton>',
        '<skeleton><bonehierarchy/></skeleton>',
    ])
    def test_missing_sections(self, xml_text):
        """<bones> and <bonehierarchy> are both required."""
        with pytest.raises(StructuralError):
            parse_skeleton(parse_xml(xml_text))


# =============================================================================
# Animations
# =============================================================================

class TestAnimations:
    """Tests for animation clips and keyframe tracks."""

    def test_clip_fields(self, skeleton_root):
        """Name, duration and loop flag are read."""
        clip = parse_skeleton(skeleton_root).animation('wave')
        assert clip.duration == 1.0
        assert clip.loop is True
        assert len(clip.tracks) == 3
        assert {track.channel for track in clip.tracks} == set(TrackChannel)
        assert all(track.bone == 'B' and track.bone_index == 1 for track in clip.tracks)

    def test_keyframes_composed_onto_rest_pose(self, skeleton_root):
        """Track values are absolute: rest translation + delta, rest rotation * delta, rest scale * delta."""
        clip = parse_skeleton(skeleton_root).animation('wave')
        by_channel = {track.channel: track for track in clip.tracks}

        positions = by_channel[TrackChannel.POSITION].values
        assert np.allclose(positions[0], [1, 0, 0])
        assert np.allclose(positions[1], [1, 1, 0], atol=1e-6)

        rotations = by_channel[TrackChannel.ROTATION].values
        expected = quaternion_from_axis_angle(np.array([0.0, 0.0, 1.0]), math.pi / 2)
        assert np.allclose(rotations[0], [1, 0, 0, 0], atol=1e-6)
        assert np.allclose(rotations[1], expected, atol=1e-6) or np.allclose(rotations[1], -expected, atol=1e-6)

        scales = by_channel[TrackChannel.SCALE].values
        assert np.allclose(scales[1], [2, 2, 2], atol=1e-5)

    def test_keyframes_sorted_by_time(self):
        """Keyframes authored out of order are sorted."""
        root = _skeleton(
            _bone(0, 'A'),
            animations=_animation(_track('A', _keyframe(1.0, y=5) + _keyframe(0.0, y=1))),
        )
        track = parse_skeleton(root).animations[0].tracks[0]
        assert track.times.tolist() == [0.0, 1.0]
        assert np.allclose(track.values[:, 1], [1, 5])

    def test_sample_interpolates_and_clamps(self):
        """Position tracks interpolate linearly and clamp outside the keys."""
        root = _skeleton(
            _bone(0, 'A'),
            animations=_animation(_track('A', _keyframe(0.0, y=0) + _keyframe(1.0, y=2))),
        )
        track = parse_skeleton(root).animations[0].tracks_for('A')[0]
        assert np.allclose(track.sample(0.5), [0, 1, 0])
        assert np.allclose(track.sample(-1.0), [0, 0, 0])
        assert np.allclose(track.sample(5.0), [0, 2, 0])

    def test_loop_flag(self):
        """loop="false" is honored."""
        root = _skeleton(
            _bone(0, 'A'),
            animations=_animation(_track('A', _keyframe(0.0)), extra='loop="false"'),
        )
        assert parse_skeleton(root).animations[0].loop is False

    def test_unknown_bone_is_range_error(self):
        """A track for an undeclared bone is a Range error."""
        root = _skeleton(_bone(0, 'A'), animations=_animation(_track('Ghost', _keyframe(0.0))))
        with pytest.raises(IndexRangeError) as exc_info:
            parse_skeleton(root)
        assert exc_info.value.meta['bone'] == 'Ghost'

    def test_track_without_keyframes_is_format_error(self):
        """An empty <keyframes> is a Format error."""
        root = _skeleton(_bone(0, 'A'), animations=_animation(_track('A', '')))
        with pytest.raises(FormatError):
            parse_skeleton(root)

    def test_track_without_keyframes_element(self):
        """A track lacking <keyframes> is a Structural error."""
        root = _skeleton(_bone(0, 'A'), animations=_animation('<track bone="A"/>'))
        with pytest.raises(StructuralError):
            parse_skeleton(root)

    @pytest.mark.parametrize("length", ["0", "-1", "nan", "abc"])
    def test_invalid_length(self, length):
        """Animation lengths must be finite and positive."""
        root = _skeleton(_bone(0, 'A'), animations=_animation(_track('A', _keyframe(0.0)), length=length))
        with pytest.raises(FormatError):
            parse_skeleton(root)

    def test_interpolation_mode_warns(self, caplog):
        """Unsupported interpolation attributes are reported and ignored."""
        root = _skeleton(
            _bone(0, 'A'),
            animations=_animation(_track('A', _keyframe(0.0)), extra='interpolationMode="spline"'),
        )
        with caplog.at_level(logging.WARNING, logger='ogremax.formats.skeleton'):
            parse_skeleton(root)
        assert 'interpolationMode' in caplog.text

    def test_idempotent(self, skeleton_root):
        """Parsing twice gives equal skeletons."""
        assert parse_skeleton(skeleton_root) == parse_skeleton(skeleton_root)

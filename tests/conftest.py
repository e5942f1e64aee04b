"""
Pytest configuration and fixtures for ogremax tests.
"""

import asyncio

import pytest

from ogremax.utils.elements import parse_xml


# =============================================================================
# Documents
# =============================================================================

SCENE_XML = """<?xml version="1.0" encoding="UTF-8"?>
<scene formatVersion="1.0" upAxis="y" unitsPerMeter="2" unitType="centimeters" author="tester">
  <nodes>
    <node name="Robot">
      <position x="1" y="0" z="0"/>
      <rotation qx="0" qy="0" qz="0" qw="1"/>
      <scale x="1" y="1" z="1"/>
      <entity name="Robot01" meshFile="robot.mesh" castShadows="true" receiveShadows="false">
        <subentities>
          <subentity index="0" materialName="Robot/Body"/>
        </subentities>
      </entity>
      <node name="Hat">
        <position x="0" y="2" z="0"/>
      </node>
    </node>
    <node name="Crate" visibility="hidden">
      <position x="-1" y="0" z="0"/>
      <entity name="Crate01" meshFile="crate.mesh">
        <subentities>
          <subentity index="0" materialName="Crate"/>
        </subentities>
      </entity>
    </node>
  </nodes>
  <environment>
    <colourAmbient r="0.2" g="0.2" b="0.2"/>
    <colourBackground r="0" g="0" b="0.5"/>
    <clipping near="0.1" far="500"/>
  </environment>
</scene>
"""

ROBOT_MESH_XML = """<mesh>
  <submeshes>
    <submesh material="Robot/Body" usesharedvertices="false" use32bitindexes="false" operationtype="triangle_list">
      <faces count="1">
        <face v1="0" v2="1" v3="2"/>
      </faces>
      <geometry vertexcount="3">
        <vertexbuffer positions="true" normals="true" texture_coords="1" texture_coord_dimensions_0="float2">
          <vertex><position x="0" y="0" z="0"/><normal x="0" y="0" z="1"/><texcoord u="0" v="0"/></vertex>
          <vertex><position x="1" y="0" z="0"/><normal x="0" y="0" z="1"/><texcoord u="1" v="0"/></vertex>
          <vertex><position x="0" y="1" z="0"/><normal x="0" y="0" z="1"/><texcoord u="0" v="1"/></vertex>
        </vertexbuffer>
      </geometry>
      <boneassignments>
        <vertexboneassignment vertexindex="0" boneindex="0" weight="1"/>
        <vertexboneassignment vertexindex="1" boneindex="1" weight="0.5"/>
        <vertexboneassignment vertexindex="1" boneindex="2" weight="0.25"/>
        <vertexboneassignment vertexindex="2" boneindex="2" weight="1"/>
      </boneassignments>
    </submesh>
  </submeshes>
  <skeletonlink name="robot.skeleton"/>
  <submeshnames>
    <submeshname name="body" index="0"/>
  </submeshnames>
</mesh>
"""

CRATE_MESH_XML = """<mesh>
  <sharedgeometry vertexcount="4">
    <vertexbuffer positions="true" normals="true">
      <vertex><position x="-1" y="-1" z="0"/><normal x="0" y="0" z="1"/></vertex>
      <vertex><position x="1" y="-1" z="0"/><normal x="0" y="0" z="1"/></vertex>
      <vertex><position x="1" y="1" z="0"/><normal x="0" y="0" z="1"/></vertex>
      <vertex><position x="-1" y="1" z="0"/><normal x="0" y="0" z="1"/></vertex>
    </vertexbuffer>
  </sharedgeometry>
  <submeshes>
    <submesh material="Crate" usesharedvertices="true">
      <faces count="2">
        <face v1="0" v2="1" v3="2"/>
        <face v1="0" v2="2" v3="3"/>
      </faces>
    </submesh>
  </submeshes>
</mesh>
"""

SKELETON_XML = """<skeleton>
  <bones>
    <bone id="2" name="C">
      <position x="0" y="2" z="0"/>
      <rotation angle="0"><axis x="1" y="0" z="0"/></rotation>
    </bone>
    <bone id="0" name="A">
      <position x="0" y="0" z="0"/>
      <rotation angle="0"><axis x="1" y="0" z="0"/></rotation>
    </bone>
    <bone id="1" name="B">
      <position x="1" y="0" z="0"/>
      <rotation angle="0"><axis x="1" y="0" z="0"/></rotation>
    </bone>
  </bones>
  <bonehierarchy>
    <boneparent bone="C" parent="A"/>
    <boneparent bone="B" parent="A"/>
  </bonehierarchy>
  <animations>
    <animation name="wave" length="1.0">
      <tracks>
        <track bone="B">
          <keyframes>
            <keyframe time="0">
              <translate x="0" y="0" z="0"/>
              <rotate angle="0"><axis x="0" y="0" z="1"/></rotate>
              <scale x="1" y="1" z="1"/>
            </keyframe>
            <keyframe time="1">
              <translate x="0" y="1" z="0"/>
              <rotate angle="1.5707963267948966"><axis x="0" y="0" z="1"/></rotate>
              <scale x="2" y="2" z="2"/>
            </keyframe>
          </keyframes>
        </track>
      </tracks>
    </animation>
  </animations>
</skeleton>
"""

MATERIAL_SCRIPT = """// Level materials
material Robot/Body
{
    technique
    {
        pass
        {
            ambient 0.5 0.5 0.5
            diffuse 1 0 0
            specular 1 1 1 1 40
            texture_unit
            {
                texture robot_diffuse.png
            }
            texture_unit
            {
                texture robot_glow.png
            }
        }
    }
}

material Crate
{
    technique { pass { diffuse 0.5 0.4 0.3
        scene_blend add
    } }
}
"""


# =============================================================================
# Fetchers
# =============================================================================

class DictFetcher:
    """In-memory fetcher recording every requested url."""

    def __init__(self, documents, delays=None):
        self.documents = dict(documents)
        self.delays = dict(delays or {})
        self.requests = []

    async def fetch(self, url):
        self.requests.append(url)
        await asyncio.sleep(self.delays.get(url, 0))
        if url not in self.documents:
            raise FileNotFoundError(url)
        return self.documents[url]


@pytest.fixture
def level_documents():
    """Scene with two entities, their meshes, one skeleton and the material script."""
    return {
        'assets/level.scene': SCENE_XML,
        'assets/robot.mesh.xml': ROBOT_MESH_XML,
        'assets/crate.mesh.xml': CRATE_MESH_XML,
        'assets/robot.skeleton.xml': SKELETON_XML,
        'assets/level.material': MATERIAL_SCRIPT,
    }


@pytest.fixture
def fetcher(level_documents):
    return DictFetcher(level_documents)


@pytest.fixture
def xml():
    """Parse an XML snippet into its root element."""
    return parse_xml


@pytest.fixture
def robot_mesh_root():
    return parse_xml(ROBOT_MESH_XML)


@pytest.fixture
def skeleton_root():
    return parse_xml(SKELETON_XML)


@pytest.fixture
def scene_root():
    return parse_xml(SCENE_XML)

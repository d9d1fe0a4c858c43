# dmsview

`dmsview` reads DMS model files and DTEX texture files. It runs their skeletal
animation and skinning on the CPU. It returns vertex, index and texture data in
plain Python structures that a renderer can consume.

## What it reads

- **DMS models** (`dmsview.model`)
  - A model is a list of meshes with an optional skeleton of bones and
    keyframed animations.
  - Skinned meshes store full vertices. Each vertex has a position, a packed
    normal, UVs, one bone id and a bone weight.
  - Models without a skeleton use a compact static vertex layout. Their float
    normals are multiplied by 127 and clamped to the signed byte range.
- **DTEX textures** (`dmsview.dtex`)
  - The reader decodes the header: width, height, and the twiddled, compressed
    and mipmapped flags.
  - It also decodes the texel encoding (`TextureEncoding.ARGB1555`, `RGB565` or
    `ARGB4444`).
  - The raw payload is kept as bytes in `DtexImage.data`.
- **Index streams** (`dmsview.primitives`)
  - A mesh's index list mixes plain triangles with tagged triangle strips.
  - Bit 31 marks a strip index, bits 24–30 hold the strip id, and the low
    24 bits hold the vertex index.
  - `split_indices` returns an `IndexBatches` with:
    - `strips`: runs of three or more indices;
    - `triangles`: a flat list of loose triangle indices;
    - `triangle_count`.

## Installing

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Usage

```python
from dmsview.model import load_model

model = load_model("dragon.dms")
print(model.animation_count(), "animations")

if model.animation_count():
    model.set_animation(0)
    print("playing", model.animation_name(model.current_animation()))

# once per frame
model.update_animation(1 / 60)
model.update_skinning()

for mesh in model.meshes:
    vertices = mesh.animated_vertices or mesh.vertices
    batches = mesh.batches()
    for strip in batches.strips:
        ...  # draw as a triangle strip
    ...      # draw batches.triangles as a triangle list
```

### Animation and skinning

`update_animation(delta_time)` does the following:

- It advances the current animation and loops it by its duration.
- It interpolates each bone between the two nearest frames, with lerp for
  translation and scale and slerp for rotation.
- It rebuilds each bone's local pose and world matrix.

`update_skinning()` runs after that. It moves every weighted vertex of a
skinned mesh through its bone's inverse bind matrix and then through the bone's
world matrix. The results go into `animated_vertices`.

### Other animation calls

| Call | Returns |
|---|---|
| `animation_count()` | 0 for a model without a skeleton |
| `current_animation()` | -1 for a model without a skeleton |
| `animation_name(index)` | `None` for an unknown index |
| `set_animation(index)` | `False` for an unknown index |

### Textures

`Model.texture_count` is one more than the highest texture id used by any mesh.
`load_textures(base_path, default_texture)` tries `texture<N>.tex` under
`base_path` for each slot from 0 to `texture_count - 1`:

- A file that is missing or cannot be decoded is replaced by `default_texture`,
  if you gave one.
- The decoded images go into `model.textures`, with `None` for slots that could
  not be loaded.
- The return value is the number of slots that loaded.

A texture can also be loaded on its own:

```python
from dmsview.dtex import load_dtex

image = load_dtex("texture0.tex")
print(image.width, image.height, image.description)
print(image.pixel_format(), image.compression_ratio())
```

- `pixel_format()` maps the encoding to a `PixelFormat`. Compressed mipmapped
  textures report `UNCOMPRESSED_R8G8B8A8`.
- `compression_ratio()` is the size of a plain 16-bit texture divided by the
  stored size, truncated.

### Errors

- `read_model` and `load_model` raise `DmsFormatError` on a wrong magic number
  or a truncated file.
- `decode_dtex` and `load_dtex` raise `DtexError` on a truncated file or an
  unknown encoding.
- The file loaders let `OSError` through for files that cannot be opened.

### Math helpers

`dmsview.mathutil` provides these helpers:

- `vector_lerp` and `quaternion_slerp`
- `quaternion_to_matrix`
- `matrix_scale` and `matrix_translate`
- `matrix_multiply` and `transform_point`
- `identity_matrix`

Matrices are flat 16-tuples in row-major order, with the translation in the
last column. Quaternions are `(x, y, z, w)`. `matrix_multiply(left, right)`
builds the transform that applies `left` first and then `right`.

## What it does not do

- It opens no window and draws nothing.
- It does not upload textures to a GPU.
- It does not decode texel data: VQ-compressed or twiddled payloads stay as raw
  bytes.
- There is no viewer or command-line program. You drive the models from your
  own code.
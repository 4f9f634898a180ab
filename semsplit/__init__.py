# Version: v1.0
"""
semsplit — LLM-assisted semantic chunking for retrieval pipelines.

Sub-modules
-----------
config     : Service defaults, logging, validated ChunkerConfig.
exceptions : Error taxonomy.
models     : Immutable records and capability protocols.
distance   : Cosine distance between embeddings.
threshold  : Adaptive pass-1 candidate threshold.
repair     : JSON extraction and tolerant repair.
schema     : Structural JSON-schema subset validation.
generator  : SchemaBoundGenerator (retrying structured output).
analyzers  : Topic / discourse / structure analyzers and tag extraction.
scorer     : Weighted boundary signal fusion.
segmenter  : Sentence segmentation.
chunker    : SemanticChunker pipeline.
providers  : llama_index Ollama adapters and build_chunker().
"""

__version__ = "1.0.0"

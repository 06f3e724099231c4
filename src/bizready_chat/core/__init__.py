"""
Core retrieval layer.

This package contains:
- line_source: streaming reads of the gzip JSONL dataset files
- scoring: query tokenizer and keyword relevance score
- topk: bounded best-of-K selection during a scan
- entities: vocabulary cache, economy and topic detection
- context: citation-indexed context block for the summarizer
- query_engine: per-question routing (direct lookup vs ranked search)
"""

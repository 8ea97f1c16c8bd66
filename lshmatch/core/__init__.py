"""Tokenization, vocabulary, MinHash signatures and LSH banding."""

from .bands import band_hash, check_band_size, create_hash_bands
from .signatures import HashFunctions, compute_signature, compute_signatures, generate_hash_functions
from .similarity import candidate_probability, jaccard, ngram_jaccard, signature_similarity
from .tokenizer import make_ngrams
from .types import DenseSignature, Entity, HashBand, HashFunction, IndexInfo, Match, VocabularyEntry
from .vocabulary import Vocabulary, build_vocabulary

__all__ = [
    "band_hash",
    "build_vocabulary",
    "candidate_probability",
    "check_band_size",
    "compute_signature",
    "compute_signatures",
    "create_hash_bands",
    "generate_hash_functions",
    "jaccard",
    "make_ngrams",
    "ngram_jaccard",
    "signature_similarity",
    "DenseSignature",
    "Entity",
    "HashBand",
    "HashFunction",
    "HashFunctions",
    "IndexInfo",
    "Match",
    "Vocabulary",
    "VocabularyEntry",
]

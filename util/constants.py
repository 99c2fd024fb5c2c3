class InternalURIs:
    ROOT = "/"
    HEALTH = "/health"
    INGEST = "/ingest"
    INGEST_HEALTH = INGEST + "/health"
    QUERY = "/query"
    QUERY_HEALTH = QUERY + "/health"
    QUERY_STATS = QUERY + "/stats"
    DOCUMENTS = "/documents"
    DOCUMENT = DOCUMENTS + "/{doc_id}"


class ApiInfo:
    NAME = "RAG Pipeline API"
    VERSION = "1.0.0"


class Limits:
    DOC_ID_MAX_CHARS = 200
    QUESTION_MAX_CHARS = 1000
    TOP_K_MIN = 1
    TOP_K_MAX = 50
    SEARCH_TOP_K_MAX = 100
    CHUNK_SIZE_MIN = 100
    CHUNK_SIZE_MAX = 2000
    CHUNK_OVERLAP_MAX = 500
    POINT_ID_MAX_CHARS = 255

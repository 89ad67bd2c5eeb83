"""
Citation & Visibility Database Models
SQLAlchemy ORM (PostgreSQL in production, any SQLAlchemy dialect in tests)
"""

from datetime import datetime
from enum import Enum as PyEnum
from uuid import uuid4

from sqlalchemy import (
    Column, String, Text, Integer, Float, Boolean, DateTime,
    ForeignKey, Enum, JSON, Index, UniqueConstraint, Uuid
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()

# JSONB on PostgreSQL, plain JSON elsewhere
JSONType = JSON().with_variant(JSONB(), "postgresql")


# ============================================================================
# ENUMS
# ============================================================================

class EngineType(str, PyEnum):
    PERPLEXITY = "perplexity"
    GOOGLE_AI_OVERVIEW = "google_ai_overview"
    CHATGPT = "chatgpt"
    BING_COPILOT = "bing_copilot"
    CLAUDE = "claude"


class QueryRunStatus(str, PyEnum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    PARTIAL = "partial"


class MentionType(str, PyEnum):
    DIRECT_CITATION = "direct_citation"    # Brand URL cited structurally
    BRAND_NAME = "brand_name"              # Name, alias or domain in text
    INDIRECT_MENTION = "indirect_mention"  # Approximate (fuzzy) match
    NOT_FOUND = "not_found"


class SentimentPolarity(str, PyEnum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


class RecommendationType(str, PyEnum):
    CREATE_CONTENT = "create_content"
    UPDATE_CONTENT = "update_content"
    ADD_SCHEMA = "add_schema"
    IMPROVE_STRUCTURE = "improve_structure"
    ADD_COMPARISON = "add_comparison"
    IMPROVE_AUTHORITY = "improve_authority"
    OPTIMIZE_CITATIONS = "optimize_citations"


class RecommendationPriority(str, PyEnum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RecommendationStatus(str, PyEnum):
    ACTIVE = "active"
    DISMISSED = "dismissed"
    COMPLETED = "completed"
    EXPIRED = "expired"


class AnalysisSource(str, PyEnum):
    RULE_BASED = "rule_based"
    AI_POWERED = "ai_powered"


class ContentGapType(str, PyEnum):
    NO_BRAND_CITATION = "no_brand_citation"
    COMPETITOR_ONLY = "competitor_only"
    STALE_CONTENT = "stale_content"
    LOW_PROMINENCE = "low_prominence"


# ============================================================================
# PROJECT & TRACKING SETUP
# ============================================================================

class Project(Base):
    """A tracked brand/domain"""
    __tablename__ = "projects"

    id = Column(Uuid, primary_key=True, default=uuid4)

    name = Column(String(255), nullable=False)
    domain = Column(String(255), nullable=False)

    brand_name = Column(String(255), nullable=False)
    brand_aliases = Column(JSONType, default=list)

    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    competitors = relationship("Competitor", back_populates="project", cascade="all, delete-orphan")
    keywords = relationship("Keyword", back_populates="project", cascade="all, delete-orphan")
    query_runs = relationship("QueryRun", back_populates="project", cascade="all, delete-orphan")


class Competitor(Base):
    """Competitor brands to track for comparison"""
    __tablename__ = "competitors"

    id = Column(Uuid, primary_key=True, default=uuid4)
    project_id = Column(Uuid, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)

    name = Column(String(255), nullable=False)
    domain = Column(String(255), nullable=False)
    aliases = Column(JSONType, default=list)

    created_at = Column(DateTime, default=datetime.utcnow)

    project = relationship("Project", back_populates="competitors")


class Keyword(Base):
    """Keywords sent to AI engines"""
    __tablename__ = "keywords"

    id = Column(Uuid, primary_key=True, default=uuid4)
    project_id = Column(Uuid, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)

    keyword = Column(String(500), nullable=False)
    category = Column(String(100))

    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    project = relationship("Project", back_populates="keywords")

    __table_args__ = (
        Index('idx_keyword_project', 'project_id', 'keyword'),
    )


# ============================================================================
# ENGINE RUNS & RESPONSES
# ============================================================================

class QueryRun(Base):
    """One scan of every active keyword across the enabled engines"""
    __tablename__ = "query_runs"

    id = Column(Uuid, primary_key=True, default=uuid4)
    project_id = Column(Uuid, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)

    status = Column(Enum(QueryRunStatus), default=QueryRunStatus.PENDING, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    completed_at = Column(DateTime)

    project = relationship("Project", back_populates="query_runs")
    results = relationship("QueryResult", back_populates="query_run", cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_run_project_status', 'project_id', 'status', 'created_at'),
    )


class QueryResult(Base):
    """Raw engine response for one keyword/engine - THE SOURCE OF TRUTH"""
    __tablename__ = "query_results"

    id = Column(Uuid, primary_key=True, default=uuid4)
    query_run_id = Column(Uuid, ForeignKey("query_runs.id", ondelete="CASCADE"), nullable=False)
    project_id = Column(Uuid, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    keyword_id = Column(Uuid, ForeignKey("keywords.id", ondelete="CASCADE"), nullable=False)

    engine_type = Column(Enum(EngineType), nullable=False)

    # Raw response - never modified
    raw_response = Column(Text, nullable=False, default="")

    # URLs the engine reported structurally (Perplexity, DataForSEO)
    citation_urls = Column(JSONType, default=list)
    response_metadata = Column(JSONType, default=dict)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    query_run = relationship("QueryRun", back_populates="results")

    __table_args__ = (
        Index('idx_result_run_keyword', 'query_run_id', 'keyword_id'),
    )


# ============================================================================
# RESPONSE ANALYSIS
# ============================================================================

class Citation(Base):
    """Brand and third-party citations found in an engine response"""
    __tablename__ = "citations"

    id = Column(Uuid, primary_key=True, default=uuid4)
    project_id = Column(Uuid, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    keyword_id = Column(Uuid, ForeignKey("keywords.id", ondelete="CASCADE"), nullable=False)
    query_result_id = Column(Uuid, ForeignKey("query_results.id", ondelete="CASCADE"), nullable=False)

    engine_type = Column(Enum(EngineType), nullable=False)

    cited_url = Column(Text, nullable=False)
    domain = Column(String(255), nullable=False)
    position = Column(Integer)  # 1-based, null when unranked
    source = Column(String(20), default="structured")  # structured / text_extracted

    is_brand_citation = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index('idx_citation_result', 'query_result_id'),
        Index('idx_citation_project_keyword', 'project_id', 'keyword_id'),
    )


class CompetitorCitation(Base):
    """Citations whose domain belongs to a tracked competitor"""
    __tablename__ = "competitor_citations"

    id = Column(Uuid, primary_key=True, default=uuid4)
    project_id = Column(Uuid, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    keyword_id = Column(Uuid, ForeignKey("keywords.id", ondelete="CASCADE"), nullable=False)
    competitor_id = Column(Uuid, ForeignKey("competitors.id", ondelete="CASCADE"), nullable=False)
    query_result_id = Column(Uuid, ForeignKey("query_results.id", ondelete="CASCADE"), nullable=False)

    engine_type = Column(Enum(EngineType), nullable=False)

    cited_url = Column(Text, nullable=False)
    position = Column(Integer)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index('idx_comp_citation_result', 'query_result_id'),
    )


class BrandMention(Base):
    """Detected brand presence in response text"""
    __tablename__ = "brand_mentions"

    id = Column(Uuid, primary_key=True, default=uuid4)
    project_id = Column(Uuid, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    keyword_id = Column(Uuid, ForeignKey("keywords.id", ondelete="CASCADE"), nullable=False)
    query_result_id = Column(Uuid, ForeignKey("query_results.id", ondelete="CASCADE"), nullable=False)

    engine_type = Column(Enum(EngineType), nullable=False)

    mention_type = Column(Enum(MentionType), nullable=False)
    matched_text = Column(String(500), nullable=False, default="")
    context = Column(Text, default="")
    confidence = Column(Float, default=1.0)

    # Null only for not_found
    sentiment = Column(Enum(SentimentPolarity), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index('idx_mention_result', 'query_result_id'),
    )


# ============================================================================
# OPTIMIZATION OUTPUT
# ============================================================================

class OptimizationRecommendation(Base):
    """Actionable recommendation produced by the rule engine or AI analyzer"""
    __tablename__ = "optimization_recommendations"

    id = Column(Uuid, primary_key=True, default=uuid4)
    project_id = Column(Uuid, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    keyword_id = Column(Uuid, ForeignKey("keywords.id", ondelete="SET NULL"))
    competitor_id = Column(Uuid, ForeignKey("competitors.id", ondelete="SET NULL"))
    query_run_id = Column(Uuid, ForeignKey("query_runs.id", ondelete="SET NULL"))

    type = Column(Enum(RecommendationType), nullable=False)
    priority = Column(Enum(RecommendationPriority), nullable=False)
    status = Column(Enum(RecommendationStatus), default=RecommendationStatus.ACTIVE, nullable=False)
    source = Column(Enum(AnalysisSource), nullable=False)

    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=False)
    actionable_steps = Column(JSONType, default=list)
    estimated_impact = Column(Float, default=0)
    target_url = Column(Text)

    extra_data = Column("metadata", JSONType, default=dict)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    completed_at = Column(DateTime)

    __table_args__ = (
        Index('idx_rec_project_status', 'project_id', 'status'),
        Index('idx_rec_keyword', 'keyword_id'),
    )


class ContentGap(Base):
    """Structural deficiency identified for a keyword"""
    __tablename__ = "content_gaps"

    id = Column(Uuid, primary_key=True, default=uuid4)
    project_id = Column(Uuid, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    keyword_id = Column(Uuid, ForeignKey("keywords.id", ondelete="CASCADE"), nullable=False)
    competitor_id = Column(Uuid, ForeignKey("competitors.id", ondelete="CASCADE"))

    gap_type = Column(Enum(ContentGapType), nullable=False)
    competitor_url = Column(Text)
    brand_last_cited_at = Column(DateTime)
    engine_types = Column(JSONType, default=list)
    severity = Column(Float, default=0, nullable=False)  # 0.0-1.0
    source = Column(Enum(AnalysisSource), default=AnalysisSource.RULE_BASED, nullable=False)

    extra_data = Column("metadata", JSONType, default=dict)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Does NOT deduplicate rows whose competitor_id is NULL (NULL != NULL)
    __table_args__ = (
        UniqueConstraint('project_id', 'keyword_id', 'gap_type', 'competitor_id', name='uq_content_gap'),
    )


class OptimizationScore(Base):
    """Immutable optimization score snapshot, one row per analysis run"""
    __tablename__ = "optimization_scores"

    id = Column(Uuid, primary_key=True, default=uuid4)
    project_id = Column(Uuid, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    keyword_id = Column(Uuid, ForeignKey("keywords.id", ondelete="SET NULL"))  # Null = project level
    query_run_id = Column(Uuid, ForeignKey("query_runs.id", ondelete="SET NULL"))

    overall_score = Column(Float, nullable=False)
    content_coverage = Column(Float, nullable=False)
    competitive_gap = Column(Float, nullable=False)
    citation_consistency = Column(Float, nullable=False)
    freshness = Column(Float, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index('idx_opt_score_project_date', 'project_id', 'created_at'),
    )

"""
Consultant profile and default knowledge corpus.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List

from xelochat.knowledge.base import KnowledgeBase, KnowledgeEntry


@dataclass(frozen=True)
class ConsultantProfile:
    """Persona the assistant speaks as."""
    name: str
    title: str
    bio: str
    expertise: List[str] = field(default_factory=list)
    services: List[str] = field(default_factory=list)
    years_of_experience: int = 0
    languages: List[str] = field(default_factory=list)
    availability: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "title": self.title,
            "bio": self.bio,
            "expertise": list(self.expertise),
            "services": list(self.services),
            "yearsOfExperience": self.years_of_experience,
            "languages": list(self.languages),
            "availability": self.availability
        }


CONSULTANT_PROFILE = ConsultantProfile(
    name="xelo",
    title="Senior Technology & Business Consultant",
    bio=(
        "Experienced consultant specializing in digital transformation, AI/ML implementation, "
        "and business strategy. 10+ years helping companies scale and innovate."
    ),
    expertise=[
        "Digital Transformation",
        "AI & Machine Learning",
        "Cloud Architecture",
        "Business Strategy",
        "Product Development",
        "Startup Growth",
        "Enterprise Solutions"
    ],
    services=[
        "Strategy Consulting",
        "Technical Audit",
        "AI Implementation",
        "Architecture Design",
        "Team Building",
        "Growth Hacking",
        "Process Optimization"
    ],
    years_of_experience=10,
    languages=["English", "Hindi"],
    availability="Available for consultations Mon-Fri, 9 AM - 6 PM EST"
)


KNOWLEDGE_ENTRIES = (
    # =========================
    # Expertise
    # =========================
    KnowledgeEntry(
        id="exp-1",
        category="expertise",
        title="Digital Transformation Strategy",
        content=(
            "Digital transformation is the integration of digital technology into all areas of "
            "business operations. I help organizations:\n"
            "- Assess current digital maturity\n"
            "- Develop comprehensive transformation roadmaps\n"
            "- Implement cloud-first strategies\n"
            "- Modernize legacy systems\n"
            "- Build data-driven decision processes\n"
            "- Enhance customer experience through digital channels"
        ),
        keywords=("digital transformation", "modernization", "cloud", "digital strategy", "technology"),
        related_topics=("cloud-architecture", "process-optimization", "team-building")
    ),
    KnowledgeEntry(
        id="exp-2",
        category="expertise",
        title="AI & Machine Learning Implementation",
        content=(
            "I specialize in practical AI/ML implementation for business value:\n"
            "- Identifying high-impact use cases for AI\n"
            "- Data strategy and governance\n"
            "- Model development and deployment\n"
            "- MLOps and model monitoring\n"
            "- AI ethics and responsible AI practices\n"
            "- Building in-house data science capabilities\n"
            "- From proof-of-concept to production systems"
        ),
        keywords=("AI", "machine learning", "ML", "deep learning", "neural networks", "data science", "models"),
        related_topics=("technical-audit", "team-building", "product-development")
    ),
    KnowledgeEntry(
        id="exp-3",
        category="expertise",
        title="Cloud Architecture & Migration",
        content=(
            "Expert guidance on cloud infrastructure and migration:\n"
            "- Multi-cloud and hybrid cloud strategies\n"
            "- AWS, Google Cloud, Azure expertise\n"
            "- Microservices and serverless architecture\n"
            "- Database design and optimization\n"
            "- Security and compliance in cloud\n"
            "- Cost optimization and resource management\n"
            "- High availability and disaster recovery"
        ),
        keywords=("cloud", "AWS", "Azure", "GCP", "infrastructure", "migration", "microservices", "serverless"),
        related_topics=("digital-transformation", "technical-audit", "process-optimization")
    ),
    KnowledgeEntry(
        id="exp-4",
        category="expertise",
        title="Business Strategy & Growth",
        content=(
            "Develop winning strategies and accelerate growth:\n"
            "- Market analysis and competitive positioning\n"
            "- Business model innovation\n"
            "- Go-to-market strategy\n"
            "- Revenue optimization\n"
            "- Scaling operations efficiently\n"
            "- Stakeholder alignment\n"
            "- KPI definition and tracking"
        ),
        keywords=("strategy", "growth", "business model", "market", "revenue", "scaling", "gtm"),
        related_topics=("startup-growth", "product-development", "process-optimization")
    ),

    # =========================
    # Services
    # =========================
    KnowledgeEntry(
        id="svc-1",
        category="service",
        title="Strategy Consulting",
        content=(
            "Develop comprehensive strategies for growth and transformation:\n"
            "- Duration: 4-12 weeks\n"
            "- Deliverables: Strategy document, implementation roadmap, financial projections\n"
            "- Ideal for: Enterprises planning transformation, startups seeking direction\n"
            "- Includes: Market research, competitive analysis, stakeholder interviews, scenario planning"
        ),
        keywords=("strategy", "consulting", "planning", "roadmap", "analysis"),
        related_topics=("business-strategy", "startup-growth")
    ),
    KnowledgeEntry(
        id="svc-2",
        category="service",
        title="Technical Audit & Assessment",
        content=(
            "Comprehensive evaluation of your technology stack:\n"
            "- Duration: 2-4 weeks\n"
            "- Deliverables: Audit report, risk assessment, improvement recommendations\n"
            "- Covers: Architecture review, security assessment, performance analysis, tech debt evaluation\n"
            "- Outcome: Clear understanding of current state and optimization opportunities"
        ),
        keywords=("technical audit", "assessment", "code review", "security", "performance"),
        related_topics=("cloud-architecture", "digital-transformation")
    ),
    KnowledgeEntry(
        id="svc-3",
        category="service",
        title="AI/ML Implementation Support",
        content=(
            "End-to-end support for AI/ML projects:\n"
            "- Duration: 3-9 months (depending on scope)\n"
            "- Includes: Use case identification, data strategy, model development, deployment, monitoring\n"
            "- Team support: Help build or augment your data science team\n"
            "- Governance: Establish MLOps practices and model governance"
        ),
        keywords=("AI", "machine learning", "implementation", "support", "team"),
        related_topics=("ai-expertise", "team-building", "technical-audit")
    ),

    # =========================
    # Case Studies
    # =========================
    KnowledgeEntry(
        id="case-1",
        category="case_study",
        title="Fortune 500 Cloud Migration",
        content=(
            "Client: Large financial services company\n"
            "Challenge: Legacy on-premises infrastructure limiting growth\n"
            "Solution: Designed and executed multi-year cloud migration strategy\n"
            "Results: 40% reduction in infrastructure costs, 60% faster deployment cycles, "
            "improved disaster recovery\n"
            "Duration: 18 months engagement\n"
            "Key Learning: Phased approach with strong change management is critical for large orgs"
        ),
        keywords=("migration", "cloud", "enterprise", "finance", "cost savings"),
        related_topics=("cloud-architecture", "digital-transformation")
    ),
    KnowledgeEntry(
        id="case-2",
        category="case_study",
        title="AI-Powered Customer Analytics Platform",
        content=(
            "Client: E-commerce startup (Series A)\n"
            "Challenge: Need for data-driven customer insights to compete\n"
            "Solution: Built ML pipeline for customer segmentation and churn prediction\n"
            "Results: 25% improvement in retention, 35% increase in targeted revenue, 3x ROI\n"
            "Duration: 6 months to MVP, ongoing optimization\n"
            "Key Learning: Focus on business outcomes, not just model accuracy"
        ),
        keywords=("AI", "ML", "startup", "analytics", "customer", "retention"),
        related_topics=("ai-expertise", "product-development", "startup-growth")
    ),

    # =========================
    # FAQ
    # =========================
    KnowledgeEntry(
        id="faq-1",
        category="faq",
        title="What's your typical engagement model?",
        content=(
            "I offer flexible engagement models:\n"
            "- Hourly consulting for short-term advice\n"
            "- Fixed project fees for defined scopes\n"
            "- Retainer arrangements for ongoing support\n"
            "- Equity arrangements for promising startups\n"
            "Most engagements start with an initial scoping call to align on objectives and timeline."
        ),
        keywords=("engagement", "pricing", "model", "how", "terms"),
        related_topics=("services", "availability")
    ),
    KnowledgeEntry(
        id="faq-2",
        category="faq",
        title="How do you work with distributed teams?",
        content=(
            "I'm experienced with remote collaboration:\n"
            "- Regular sync meetings via video conference\n"
            "- Asynchronous documentation and updates\n"
            "- Direct Slack/email support\n"
            "- Flexible timezone accommodation\n"
            "- Can work fully remote or on-site depending on needs\n"
            "Many of my recent engagements have been fully remote with excellent outcomes."
        ),
        keywords=("remote", "distributed", "team", "collaboration", "work"),
        related_topics=("team-building", "availability")
    ),
    KnowledgeEntry(
        id="faq-3",
        category="faq",
        title="What industries do you specialize in?",
        content=(
            "I've worked across multiple sectors:\n"
            "- Financial Services & FinTech\n"
            "- E-commerce & Retail\n"
            "- Healthcare & MedTech\n"
            "- SaaS & Software\n"
            "- Manufacturing & Industrial\n"
            "- Media & Entertainment\n"
            "While I have deep experience in these areas, my core methodologies apply across industries."
        ),
        keywords=("industry", "sectors", "fintech", "saas", "healthcare"),
        related_topics=("expertise", "case-studies")
    ),

    # =========================
    # Process
    # =========================
    KnowledgeEntry(
        id="proc-1",
        category="process",
        title="Typical Engagement Process",
        content=(
            "My standard approach for consulting engagements:\n"
            "1. Discovery Call (30 min): Understand your challenge and goals\n"
            "2. Proposal & Agreement (1 week): Define scope, timeline, deliverables, pricing\n"
            "3. Kick-off (Week 1): Detailed planning and team alignment\n"
            "4. Execution (Weeks 2-N): Regular check-ins, iterative progress\n"
            "5. Delivery (Final week): Present findings, recommendations, handoff\n"
            "6. Follow-up (Optional): Ongoing support or implementation assistance"
        ),
        keywords=("process", "engagement", "how it works", "steps", "timeline"),
        related_topics=("services", "engagement-model")
    ),
)


def load_default_knowledge_base() -> KnowledgeBase:
    """Build the knowledge base from the bundled corpus."""
    return KnowledgeBase(KNOWLEDGE_ENTRIES)

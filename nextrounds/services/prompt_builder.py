"""
Prompt Builder - turns a job description, resume and hiring stage into
the instruction sent to the model.

Inputs are sanitised before they are embedded in the prompt, and submitted
content is screened for active markup before anything is generated.
"""
import re
from typing import Optional

# Removed from inputs before prompting
SCRIPT_TAG_RE = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
JS_PROTOCOL_RE = re.compile(r"javascript:", re.IGNORECASE)
EVENT_HANDLER_RE = re.compile(r"""on\w+\s*=\s*["'][^"']*["']""", re.IGNORECASE)

# Rejected outright when found in a submission
SUSPICIOUS_PATTERNS = [
    re.compile(r"<script", re.IGNORECASE),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"data:text/html", re.IGNORECASE),
    re.compile(r"vbscript:", re.IGNORECASE),
    re.compile(r"onload=", re.IGNORECASE),
    re.compile(r"onerror=", re.IGNORECASE),
]


def sanitize_input(value: str) -> str:
    """Strip script tags, javascript: URLs and inline event handlers."""
    value = SCRIPT_TAG_RE.sub("", value)
    value = JS_PROTOCOL_RE.sub("", value)
    value = EVENT_HANDLER_RE.sub("", value)
    return value.strip()


def validate_content(content: str) -> bool:
    """True if the text carries none of the suspicious patterns."""
    return not any(pattern.search(content) for pattern in SUSPICIOUS_PATTERNS)


# (keywords, heading, focus areas); first match wins
ROLE_FOCUS_AREAS = [
    (
        ("software engineer", "developer", "programming"),
        "SOFTWARE ENGINEER",
        [
            "Data structures & algorithms coding interviews",
            "System design (for mid/senior roles)",
            "Technical knowledge (programming languages, frameworks)",
            "Problem solving and code quality assessment",
            "Behavioral questions about collaboration and teamwork",
        ],
    ),
    (
        ("product manager", "pm "),
        "PRODUCT MANAGER",
        [
            "Product sense & strategy (prioritization, roadmap planning)",
            "Execution capabilities (handling trade-offs, metrics)",
            "Analytical skills (case studies, metrics interpretation)",
            "Leadership & influence (stakeholder management)",
            "Behavioral questions around ownership and decision-making",
        ],
    ),
    (
        ("engineering manager", "tech lead"),
        "ENGINEERING MANAGER",
        [
            "People management & coaching scenarios",
            "Technical depth (high-level architecture discussions)",
            "Delivery & execution (how you ship products)",
            "Cross-team collaboration and communication",
            "Leadership style & cultural fit assessment",
        ],
    ),
    (
        ("designer", "ui/ux", "product design"),
        "DESIGNER",
        [
            "Portfolio deep-dive (past design decisions and process)",
            "Design exercise or whiteboard challenge",
            "User research & testing methodologies",
            "Collaboration with PM and engineering teams",
            "Visual and interaction design judgment",
        ],
    ),
    (
        ("data scientist", "data analyst", "analytics"),
        "DATA SCIENTIST/ANALYST",
        [
            "SQL and coding interviews (Python/R)",
            "Statistics and experimentation design",
            "Modeling case studies and approach",
            "Business and product analytics cases",
            "Communication of findings to stakeholders",
        ],
    ),
    (
        ("sales", "account executive", "business development"),
        "SALES/ACCOUNT EXECUTIVE",
        [
            "Role-play scenarios (discovery calls, objection handling)",
            "Pipeline strategy and management",
            "Revenue targets & forecasting approach",
            "Relationship-building and client management",
            "Behavioral questions about resilience and results",
        ],
    ),
    (
        ("customer success", "customer support", "client success"),
        "CUSTOMER SUCCESS",
        [
            "Situational scenarios (customer escalations, difficult conversations)",
            "Prioritization and time management skills",
            "Communication, empathy, and relationship building",
            "Collaboration with sales and product teams",
        ],
    ),
    (
        ("marketing", "growth", "brand"),
        "MARKETING MANAGER",
        [
            "Campaign strategy & planning exercises",
            "Analytical thinking (metrics, ROI analysis)",
            "Messaging and positioning challenges",
            "Cross-functional stakeholder collaboration",
        ],
    ),
    (
        ("finance", "operations", "analyst"),
        "FINANCE/OPERATIONS",
        [
            "Technical skills (Excel, financial modeling)",
            "Scenario-based problem solving",
            "Process improvement case studies",
            "Detail-oriented behavioral questions",
        ],
    ),
]

GENERAL_FOCUS_AREAS = [
    "Role-specific technical/functional skills",
    "Problem-solving and analytical thinking",
    "Communication and presentation skills",
    "Team collaboration and cultural fit",
    "Leadership potential and growth mindset",
]


def get_role_focus_areas(job_description: str) -> str:
    """Onsite focus areas for the role the job description describes."""
    text = job_description.lower()
    for keywords, heading, areas in ROLE_FOCUS_AREAS:
        if any(keyword in text for keyword in keywords):
            title = f"ONSITE INTERVIEW FOCUS AREAS FOR {heading}:"
            break
    else:
        title, areas = "GENERAL ONSITE INTERVIEW FOCUS AREAS:", GENERAL_FOCUS_AREAS

    return "\n".join([title] + [f"- {area}" for area in areas])


def is_onsite_stage(hiring_stage: str) -> bool:
    stage = hiring_stage.lower()
    return "panel" in stage or "onsite" in stage


PROMPT_TEMPLATE = """You are an expert interview coach and talent acquisition specialist.
Generate personalised, stage-appropriate interview questions for this candidate.

JOB DESCRIPTION:
{job_description}

CANDIDATE RESUME:
{resume_text}

HIRING STAGE:
{hiring_stage}
{focus_areas}
Adapt the questions to the hiring stage:
- Recruiter screen: qualifications, motivation, logistics, expectations. Surface level.
- Hiring manager: role fit, leadership, team dynamics, decision-making.
- Technical/functional assessment: core skills, problem-solving, tools and methodology.
- Panel/onsite: comprehensive mix of advanced technical and behavioral scenarios.
- Executive/final: strategic vision, industry trends, leadership philosophy.

Requirements:
- Generate 20-25 questions in 5-6 categories with 4-5 questions each.
- Include an "Introductory Questions" category except for technical and executive stages.
- For each question give a framework for answering ("howToAnswer") and an
  example answer ("example") built from the actual resume content.
- Keep every question professional and legally compliant.

Return ONLY a JSON object mapping category names to lists of questions:
{{
  "Introductory Questions": [
    {{
      "question": "Can you tell me about yourself and your background?",
      "howToAnswer": "Use the Present-Past-Future framework ...",
      "example": "An answer drawn from the candidate's resume ..."
    }}
  ],
  "Technical/Domain Questions": [ ... ],
  "Behavioral/Situational Questions": [ ... ]
}}"""


def build_prompt(job_description: str, resume_text: str, hiring_stage: str) -> str:
    """Assemble the generation prompt from sanitised inputs."""
    job_description = sanitize_input(job_description)
    resume_text = sanitize_input(resume_text)
    hiring_stage = sanitize_input(hiring_stage)

    focus: Optional[str] = None
    if is_onsite_stage(hiring_stage):
        focus = get_role_focus_areas(job_description)

    return PROMPT_TEMPLATE.format(
        job_description=job_description,
        resume_text=resume_text,
        hiring_stage=hiring_stage,
        focus_areas=f"\n{focus}\n" if focus else ""
    )

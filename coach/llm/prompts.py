"""
Prompt templates and output schemas for the interview features.
"""
from typing import Optional, Sequence

from coach.schemas.session import TranscriptEntry

CATEGORIES = ["Technical", "Behavioral", "Situational", "Company"]
DIFFICULTIES = ["Easy", "Medium", "Hard"]

EMPTY_SESSION_SUMMARY = "The interview session was empty and could not be evaluated."

SYSTEM_MESSAGE = "You are an expert interview coach. Always answer with JSON that matches the requested schema."


def question_generation_prompt(job_description: str, persona: str, resume_text: Optional[str] = None) -> str:
    resume_section = f"Candidate's Resume:\n{resume_text}" if resume_text else ""
    return f"""
You are an expert technical recruiter and interview coach acting with the persona of "{persona}".
Based on the following job description, and the candidate's resume if provided, generate exactly 10 interview questions.

Job Description:
{job_description}

{resume_section}

Requirements:
- If a resume is provided, generate at least 3 questions that directly reference specific projects or experiences from the resume.
- 4 technical/domain-specific questions matching the required skills
- 3 behavioral questions using STAR method format
- 2 situational questions
- 1 company/role-specific question

For each question, provide:
1. The question text
2. Category (Technical/Behavioral/Situational/Company)
3. Difficulty (Easy/Medium/Hard)
4. Expected answer duration in minutes

Return the questions in a JSON object under the key "questions".
"""


def answer_evaluation_prompt(question: str, question_type: str, user_answer: str) -> str:
    return f"""
You are an expert interview coach providing constructive feedback.

Question: {question}
Question Type: {question_type}
Candidate's Answer: {user_answer}

Evaluate this answer on a scale of 1-10 and provide:
1. Overall Score (as 'overall_score') from 1-10
2. Three specific strengths (as 'strengths')
3. Three areas for improvement (as 'areas_for_improvement')
4. A suggested structure for a better answer (as 'suggested_answer_structure')
5. Key points the candidate missed (as 'key_points_missed')

Be constructive, encouraging, and specific. Format your response as a clean JSON object.
"""


def format_transcript(transcript: Sequence[TranscriptEntry]) -> str:
    return "\n".join(f"{entry.speaker.upper()}: {entry.text}" for entry in transcript)


def live_session_review_prompt(transcript: Sequence[TranscriptEntry], job_title: str) -> str:
    return f"""
You are an expert interview coach and communication specialist reviewing a recorded interview session for the role of {job_title}.
You were provided a video stream of the candidate during the interview. Based on the full conversation transcript below and your visual observation of the candidate's non-verbal cues, provide a holistic evaluation.

Transcript:
{format_transcript(transcript)}

Provide the following in your evaluation:
1. An overall summary of the candidate's performance.
2. Three specific strengths in their communication and answers.
3. Three areas for improvement in their communication and answers.
4. Specific feedback on non-verbal communication based on your visual observation. Comment on perceived confidence, clarity, pacing, eye contact, body language, and use of filler words.

Format your response as a clean JSON object.
"""


def live_interview_instruction(job_title: str, company: str, persona: str, resume_text: Optional[str] = None) -> str:
    """System instruction for the streamed, spoken interview."""
    instruction = f"""You are an AI interviewer and communication coach conducting a live, conversational interview for a {job_title} position at {company}. Your persona is "{persona}".
- You are receiving a real-time video and audio stream from the candidate.
- Begin the interview by introducing yourself and setting the stage.
- Ask a mix of technical, behavioral, and situational questions relevant to the job.
- Ask follow-up questions based on my responses to dig deeper.
- Keep your questions and responses concise to maintain a natural conversation flow.
- You must respond with voice. Do not provide text-only responses."""
    if resume_text:
        instruction += f"\n- You have my resume. Ask me specific questions about my projects and experiences listed there. Here is the resume:\n{resume_text}"
    instruction += "\n- Throughout the conversation, observe my non-verbal cues from the video stream. You will be asked to provide feedback on this after the interview."
    instruction += '\n- When I indicate I am ready to end the interview, say "Thank you for your time. This concludes the interview." and end the conversation.'
    return instruction


# ============================================
# Output schemas (strict JSON schema mode)
# ============================================

def _string_list() -> dict:
    return {"type": "array", "items": {"type": "string"}}


QUESTION_ITEM_SCHEMA = {
    "type": "object",
    "properties": {
        "question": {"type": "string"},
        "category": {"type": "string", "enum": CATEGORIES},
        "difficulty": {"type": "string", "enum": DIFFICULTIES},
        "expected_answer_duration_minutes": {"type": "number"},
    },
    "required": ["question", "category", "difficulty", "expected_answer_duration_minutes"],
    "additionalProperties": False,
}

QUESTION_LIST_SCHEMA = {
    "name": "interview_questions",
    "schema": {
        "type": "object",
        "properties": {
            "questions": {"type": "array", "items": QUESTION_ITEM_SCHEMA},
        },
        "required": ["questions"],
        "additionalProperties": False,
    },
}

FEEDBACK_SCHEMA = {
    "name": "answer_feedback",
    "schema": {
        "type": "object",
        "properties": {
            "overall_score": {"type": "number"},
            "strengths": _string_list(),
            "areas_for_improvement": _string_list(),
            "suggested_answer_structure": {"type": "string"},
            "key_points_missed": _string_list(),
        },
        "required": [
            "overall_score",
            "strengths",
            "areas_for_improvement",
            "suggested_answer_structure",
            "key_points_missed",
        ],
        "additionalProperties": False,
    },
}

LIVE_FEEDBACK_SCHEMA = {
    "name": "live_session_feedback",
    "schema": {
        "type": "object",
        "properties": {
            "overall_summary": {"type": "string"},
            "strengths": _string_list(),
            "areas_for_improvement": _string_list(),
            "non_verbal_feedback": _string_list(),
        },
        "required": ["overall_summary", "strengths", "areas_for_improvement", "non_verbal_feedback"],
        "additionalProperties": False,
    },
}

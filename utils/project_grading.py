import logging
import re

from errors import ExternalServiceError

logger = logging.getLogger(__name__)

PASSING_SCORE = 70

GRADING_PROMPT = """You are an expert programming instructor evaluating a student's project submission.

PROJECT DETAILS:
Title: {title}
Language: {language}

REQUIREMENTS:
{requirements}

STUDENT'S SUBMITTED CODE:
{code}

GRADING CRITERIA (Total: 100 points):
- Requirements Met (70 points): award points for each requirement completed
- Code Quality (20 points): structure, readability, proper syntax
- Functionality (10 points): does the code work correctly

RESPONSE FORMAT (plain text only, no markdown):

Score: [number]/100

Feedback:

Congratulations! [one sentence about their submission]

What you did well:
- [specific thing from their code]
- [specific thing from their code]

What needs improvement:
- [specific thing based on the requirements]
- [specific thing based on the requirements]

Status: ["You passed!" if score >= 70, "Keep practicing!" if score < 70]

Analyze the code now:"""

FEEDBACK_PROMPT = """You are a supportive programming instructor providing feedback on a student's activity submission.

ACTIVITY DETAILS:
Title: {title}
Description: {description}

INSTRUCTIONS:
{instructions}

STUDENT'S SUBMITTED CODE:
{code}

RESPONSE FORMAT (plain text only, no markdown):

Feedback:

Great job on completing this activity! [one encouraging sentence]

What you did well:
- [specific strength]
- [specific strength]

Areas for improvement:
- [constructive suggestion]
- [constructive suggestion]

Next steps:
[2-3 sentences of actionable advice]

Provide your feedback now:"""

_SCORE = re.compile(r'(?:Score|Grade):\s*(\d{1,3})\s*/\s*100', re.IGNORECASE)


def _section(text: str, heading: str, stops: tuple) -> str:
    stop = '|'.join(re.escape(s) for s in stops)
    pattern = rf'{re.escape(heading)}\s*(.*?)(?=(?:{stop})|$)' if stops else rf'{re.escape(heading)}\s*(.*)$'
    match = re.search(pattern, text, re.IGNORECASE | re.DOTALL)
    return match.group(1).strip() if match else ''


def parse_grading_response(text: str) -> dict:
    """
    Pull the score and feedback sections out of a grading reply.

    A reply without a readable score counts as 0.
    """
    match = _SCORE.search(text or '')
    score = min(int(match.group(1)), 100) if match else 0
    passed = score >= PASSING_SCORE

    body = _section(text, 'Feedback:', ()) or text or ''
    congrats = re.search(r'Congratulations[^!.]*[!.]', body, re.IGNORECASE)
    congrats_message = congrats.group(0).strip() if congrats else 'Congratulations on completing your project!'
    strengths = (_section(body, 'What you did well:', ('What needs improvement:', 'Status:'))
                 or 'You completed the project successfully.')
    improvements = (_section(body, 'What needs improvement:', ('Status:',))
                    or 'Continue practicing to improve your skills.')

    status = 'You passed!' if passed else 'Keep practicing!'
    feedback = f"{congrats_message}\n\n{strengths}\n\n{improvements}\n\nGrade: {score}/100 - {status}"
    return {
        'score': score,
        'passed': passed,
        'feedback': feedback,
        'congrats_message': congrats_message,
        'strengths': strengths,
        'improvements': improvements,
    }


def grade_project(ai_service, project: dict, code: str) -> dict:
    """
    Grade a mini-project submission.

    Raises:
        ExternalServiceError: the AI service is unavailable
    """
    logger.info(f"Grading project '{project.get('title')}' ({len(code)} chars of {project.get('language')})")
    prompt = GRADING_PROMPT.format(
        title=project.get('title', ''),
        language=project.get('language', ''),
        requirements=project.get('requirements') or project.get('description', ''),
        code=code,
    )
    result = parse_grading_response(ai_service.generate(prompt, temperature=0.3, max_tokens=2000))
    logger.info(f"Graded '{project.get('title')}': {result['score']}/100")
    return result


def parse_feedback_response(text: str) -> dict:
    body = _section(text, 'Feedback:', ()) or text or ''
    intro = re.search(r'Great job[^!.]*[!.][^\n]*', body, re.IGNORECASE)
    intro = intro.group(0).strip() if intro else 'Great job on completing this activity!'
    strengths = (_section(body, 'What you did well:', ('Areas for improvement:', 'Next steps:'))
                 or '- You successfully completed the activity')
    improvements = (_section(body, 'Areas for improvement:', ('Next steps:',))
                    or '- Continue practicing to enhance your skills')
    next_steps = (_section(body, 'Next steps:', ())
                  or 'Keep practicing and exploring new programming concepts.')

    feedback = (f"{intro}\n\nWhat You Did Well:\n{strengths}\n\n"
                f"Areas for Improvement:\n{improvements}\n\nNext Steps:\n{next_steps}")
    return {
        'feedback': feedback,
        'intro': intro,
        'strengths': strengths,
        'improvements': improvements,
        'next_steps': next_steps,
    }


def generate_activity_feedback(ai_service, activity: dict, code: str) -> dict:
    """AI feedback for an activity submission; ungraded, meant for the student."""
    prompt = FEEDBACK_PROMPT.format(
        title=activity.get('title', ''),
        description=activity.get('description', ''),
        instructions=activity.get('instructions', ''),
        code=code,
    )
    try:
        return parse_feedback_response(ai_service.generate(prompt, temperature=0.5, max_tokens=1500))
    except ExternalServiceError:
        logger.error(f"Activity feedback failed for '{activity.get('title')}'")
        raise

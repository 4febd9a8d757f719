"""
Weekly mini-project generation.

Builds a personalised prompt from the student's survey, parses the model's
``PROJECT n:`` blocks into project dicts and falls back to fixed templates
when the model is unavailable or returns too few projects.
"""
import logging
import re
from datetime import datetime

from errors import ExternalServiceError, ValidationError
from utils.languages import Language
from utils.mini_projects import add_weekly_generated_projects, prune_history
from utils.weeks import week_bounds

logger = logging.getLogger(__name__)

PROJECTS_PER_LANGUAGE = 6

SKILL_BEGINNER = 'Beginner'
SKILL_INTERMEDIATE = 'Intermediate'
SKILL_ADVANCED = 'Advanced'

# Topic keywords -> concepts per skill level
GOAL_CONCEPTS = [
    (('web', 'website', 'html'), {
        SKILL_BEGINNER: ['Object-oriented basics used in every web framework', 'Arrays and lists for app data',
                         'String manipulation for form input', 'Loops and conditionals for validation',
                         'Methods to organise handler code', 'Console menus that simulate a UI'],
        SKILL_INTERMEDIATE: ['Inheritance for request handlers', 'Interfaces and polymorphism for service layers',
                             'Collections and maps for sessions and caching', 'Exception handling',
                             'String parsing for requests', 'Maps for URL routing'],
        SKILL_ADVANCED: ['Factory and singleton patterns', 'Abstract classes for framework design',
                         'Middleware chains', 'Performance tuning of algorithms',
                         'State management patterns', 'Advanced collections for caching'],
    }),
    (('game', 'gaming'), {
        SKILL_BEGINNER: ['Variables for player stats', 'Loops for game turns', 'Conditionals for game rules',
                         'Arrays for items and enemies', 'Functions for actions', 'Random numbers for chance'],
        SKILL_INTERMEDIATE: ['Classes for game entities', 'Inheritance for character types',
                             'Collision detection', 'Game state management',
                             'Data structures for inventory', 'Event handling for input'],
        SKILL_ADVANCED: ['Pathfinding', 'State and observer patterns', 'Efficient collision checks',
                         'Spatial partitioning', 'Procedural generation', 'Combat systems'],
    }),
    (('data', 'analytics', 'database'), {
        SKILL_BEGINNER: ['Arrays and lists for records', 'Loops over records', 'String parsing for input',
                         'Calculations with variables', 'Simple sorting', 'Console data entry'],
        SKILL_INTERMEDIATE: ['Collections for data management', 'Sorting algorithms', 'Search algorithms',
                             'Data validation', 'Aggregation and statistics', 'Indexing with maps'],
        SKILL_ADVANCED: ['Trees and graphs for queries', 'Search and sort optimisation', 'Index structures',
                         'Query planning', 'Caching', 'Statistical algorithms'],
    }),
    (('ai', 'machine learning', 'ml'), {
        SKILL_BEGINNER: ['Arrays as vectors', 'Loops over data', 'Math operations', 'Decision making',
                         'Functions', 'Random initialisation'],
        SKILL_INTERMEDIATE: ['Matrix operations', 'Mean and variance', 'Pattern matching',
                             'Datasets in lists', 'Simple classifiers', 'Normalisation'],
        SKILL_ADVANCED: ['Gradient descent', 'Decision trees', 'Optimisation', 'Probability distributions',
                         'Perceptrons', 'Performance tuning'],
    }),
    (('mobile', 'app'), {
        SKILL_BEGINNER: ['Objects for app components', 'Lists for app data', 'String handling for input',
                         'Form validation', 'Functions for button actions', 'State variables'],
        SKILL_INTERMEDIATE: ['Screens as classes', 'Lifecycle state', 'Event handling', 'List adapters',
                             'Validation patterns', 'UI data structures'],
        SKILL_ADVANCED: ['MVC and MVVM', 'Complex state', 'Efficient list rendering', 'Lazy loading',
                         'Clean architecture', 'Caching'],
    }),
]

DEFAULT_CONCEPTS = ['Object-oriented programming fundamentals', 'Data structures (arrays, lists, maps)',
                    'Input validation', 'Error handling', 'Sorting and searching', 'Functions and code organisation']

GENERATION_PROMPT = """You are creating {count} UNIQUE mini programming projects that teach programming concepts the student needs for their goal.

STUDENT PROFILE:
Student Interest: "{course_interest}"
Student Goals: "{learning_goals}"
AI Analysis: {analysis}
Language: {language}
Skill Level: {skill_level}

The student only has a SINGLE FILE CONSOLE COMPILER, so every project must be a single-file console program.
Teach concepts that matter for "{course_interest}":
{concepts}

TECHNICAL CONSTRAINTS:
- SINGLE FILE ONLY, console input via {input_hint}
- NO web servers, databases, GUI, external libraries or file I/O
- ALL {count} PROJECTS MUST BE AT {skill_level} LEVEL

FORMAT EACH PROJECT EXACTLY LIKE THIS:

PROJECT 1:
Title: [Concept - Application]
Description: [what the project teaches and why it matters for {course_interest}]
Language: {language}
Requirements:
- [requirement]
- [requirement]
- [requirement]
Sample Output:
[realistic console interaction]

Do not use asterisks in titles. Generate {count} projects now:"""

_PROJECT_SPLIT = re.compile(r'PROJECT\s+\d+\s*:', re.IGNORECASE)
_TITLE = re.compile(r'Title:\s*(.+?)(?:\n|$)', re.IGNORECASE)
_DESCRIPTION = re.compile(r'Description:\s*(.+?)(?=\n\s*(?:Language|Requirements|Sample Output):|$)',
                          re.IGNORECASE | re.DOTALL)
_LANGUAGE = re.compile(r'Language:\s*(.+?)(?:\n|$)', re.IGNORECASE)
_REQUIREMENTS = re.compile(r'Requirements:\s*(.+?)(?=\n\s*Sample Output:|$)', re.IGNORECASE | re.DOTALL)
_SAMPLE_OUTPUT = re.compile(r'Sample Output:\s*(.+?)(?=\n\s*\n|$)', re.IGNORECASE | re.DOTALL)


def determine_skill_level(survey: dict) -> str:
    """
    Skill level from quiz scores, or the self-assessment when there are none.

    Average percentage >= 70 is Advanced, >= 40 Intermediate, otherwise Beginner.
    """
    scores = []
    for language in Language:
        score = (survey.get(f'{language.value}_questions') or {}).get('score') or {}
        if score.get('percentage'):
            scores.append(score['percentage'])

    if not scores:
        expertise = {survey.get('java_expertise'), survey.get('python_expertise')}
        if 'expert' in expertise:
            return SKILL_ADVANCED
        if 'intermediate' in expertise:
            return SKILL_INTERMEDIATE
        return SKILL_BEGINNER

    average = sum(scores) / len(scores)
    logger.debug(f"Average quiz score: {average:.1f}%")
    if average >= 70:
        return SKILL_ADVANCED
    if average >= 40:
        return SKILL_INTERMEDIATE
    return SKILL_BEGINNER


def concepts_for_goal(course_interest: str, learning_goals: str, skill_level: str) -> list:
    text = f"{course_interest or ''} {learning_goals or ''}".lower()
    words = set(re.findall(r'[a-z]+', text))
    for keywords, by_level in GOAL_CONCEPTS:
        # Multi-word keywords match as phrases, short ones as whole words
        if any((keyword in text) if ' ' in keyword else (keyword in words) for keyword in keywords):
            return by_level[skill_level]
    return DEFAULT_CONCEPTS


def build_generation_prompt(survey: dict, language, count: int = PROJECTS_PER_LANGUAGE) -> str:
    language = Language.parse(language)
    skill_level = determine_skill_level(survey)
    concepts = concepts_for_goal(survey.get('course_interest'), survey.get('learning_goals'), skill_level)
    return GENERATION_PROMPT.format(
        count=count,
        course_interest=survey.get('course_interest') or 'programming',
        learning_goals=survey.get('learning_goals') or 'not specified',
        analysis=survey.get('ai_analysis') or 'No analysis available',
        language=language.display_name,
        skill_level=skill_level,
        concepts='\n'.join(f'- {c}' for c in concepts),
        input_hint='Scanner' if language == Language.JAVA else 'input()',
    )


def _clean_title(title: str) -> str:
    return title.strip().strip('*').strip('"\'').strip()


def parse_projects(text: str) -> list:
    """Parse ``PROJECT n:`` blocks; blocks missing a title, description or language are skipped."""
    projects = []
    for block in _PROJECT_SPLIT.split(text or ''):
        if not block.strip():
            continue
        title = _TITLE.search(block)
        description = _DESCRIPTION.search(block)
        language = _LANGUAGE.search(block)
        if not (title and description and language):
            continue

        requirements = _REQUIREMENTS.search(block)
        requirement_lines = []
        if requirements:
            requirement_lines = [line.strip() for line in requirements.group(1).splitlines()
                                 if line.strip().startswith('-')]
        sample_output = _SAMPLE_OUTPUT.search(block)

        projects.append({
            'title': _clean_title(title.group(1)),
            'description': ' '.join(description.group(1).split()),
            'language': language.group(1).strip(),
            'requirements': '\n'.join(requirement_lines),
            'sample_output': sample_output.group(1).strip() if sample_output else '',
        })
    return projects


# ============================================================================
# FALLBACK TEMPLATES
# ============================================================================

FALLBACK_TEMPLATES = {
    Language.JAVA: [
        {
            'title': 'Student Grade Calculator',
            'description': 'Build a console application that stores and calculates student grades. '
                           'Practice working with variables, basic math operations, and formatted output.',
            'requirements': '- Create variables to store student name and scores for 3 subjects\n'
                            '- Calculate the average score\n'
                            '- Display the student name, individual scores, and average\n'
                            '- Use appropriate data types (String, int, double)',
            'rubrics': '- Correctly declares and initializes variables (2 pts)\n'
                       '- Performs accurate average calculation (2 pts)\n'
                       '- Displays output in a clear, formatted way (1 pt)',
        },
        {
            'title': 'Temperature Converter',
            'description': 'Create a program that converts temperatures between Celsius and Fahrenheit. '
                           'Use conditional statements to pick the conversion from user input.',
            'requirements': '- Prompt user to choose conversion type (C to F or F to C)\n'
                            '- Read temperature value from user\n'
                            '- Use if-else statements to perform the correct conversion\n'
                            '- Display the converted temperature with proper unit',
            'rubrics': '- Correctly implements conditional logic (2 pts)\n'
                       '- Accurate conversion formulas (2 pts)\n'
                       '- Handles user input properly (1 pt)',
        },
        {
            'title': 'Multiplication Table Generator',
            'description': 'Build a program that generates multiplication tables using loops. '
                           'Practice loop control and formatting output.',
            'requirements': "- Ask user which number's multiplication table to generate\n"
                            '- Use a for loop to calculate and display products (1 through 10)\n'
                            '- Format output in a readable table format\n'
                            '- Include proper column headers',
            'rubrics': '- Correctly implements loop structure (2 pts)\n'
                       '- Accurate calculations in each iteration (2 pts)\n'
                       '- Well-formatted table output (1 pt)',
        },
        {
            'title': 'Simple Calculator',
            'description': 'Create a calculator with separate methods for each operation. '
                           'Practice parameters, return values, and reusable methods.',
            'requirements': '- Create methods for add, subtract, multiply, and divide operations\n'
                            '- Each method should accept two parameters and return the result\n'
                            '- Main method should call appropriate method based on user choice\n'
                            '- Handle division by zero with appropriate message',
            'rubrics': '- Correctly defines methods with parameters and return types (2 pts)\n'
                       '- Properly calls methods and uses return values (2 pts)\n'
                       '- Handles edge cases like division by zero (1 pt)',
        },
        {
            'title': 'Student Name Manager',
            'description': 'Build a program that manages a list of student names using arrays. '
                           'Practice array declaration, traversal, and basic array operations.',
            'requirements': '- Create an array to store 5 student names\n'
                            '- Use Scanner to get names from user input\n'
                            '- Display all names in the array\n'
                            '- Find and display the longest name in the list',
            'rubrics': '- Correctly declares and populates array (2 pts)\n'
                       '- Successfully iterates through array to display all names (2 pts)\n'
                       '- Implements logic to find longest name (1 pt)',
        },
        {
            'title': 'Word Counter and Analyzer',
            'description': 'Create a program that analyzes text input. '
                           'Practice string methods and character processing.',
            'requirements': '- Prompt user to enter a sentence\n'
                            '- Count total number of characters (excluding spaces)\n'
                            '- Count number of words in the sentence\n'
                            '- Convert sentence to uppercase and display it',
            'rubrics': '- Correctly counts characters and words (2 pts)\n'
                       '- Properly uses string methods (length, split, toUpperCase) (2 pts)\n'
                       '- Handles input and displays results clearly (1 pt)',
        },
    ],
    Language.PYTHON: [
        {
            'title': 'Personal Budget Tracker',
            'description': 'Build a console application that tracks personal expenses. '
                           'Practice variables, basic math operations, and formatted output.',
            'requirements': '- Create variables to store income and expenses for different categories\n'
                            '- Calculate total expenses and remaining balance\n'
                            '- Display all financial information in a formatted way\n'
                            '- Use appropriate data types (str, int, float)',
            'rubrics': '- Correctly declares and initializes variables (2 pts)\n'
                       '- Performs accurate calculations (2 pts)\n'
                       '- Displays output in a clear, formatted way (1 pt)',
        },
        {
            'title': 'Movie Ticket Price Calculator',
            'description': 'Create a program that calculates movie ticket prices based on age and day. '
                           'Use conditional statements to apply pricing rules.',
            'requirements': '- Prompt user for age and day of week\n'
                            '- Use if-elif-else statements to determine ticket price\n'
                            '- Apply discounts for children (< 12) and seniors (>= 65)\n'
                            '- Show final price with applied discount information',
            'rubrics': '- Correctly implements conditional logic (2 pts)\n'
                       '- Accurate price calculations with discounts (2 pts)\n'
                       '- Handles user input and displays results properly (1 pt)',
        },
        {
            'title': 'Number Pattern Generator',
            'description': 'Build a program that generates number patterns using loops. '
                           'Practice nested loops and output formatting.',
            'requirements': '- Generate a right triangle pattern of numbers\n'
                            '- Use nested loops to create the pattern\n'
                            '- Ask user for pattern height\n'
                            '- Display numbers incrementing in each row',
            'rubrics': '- Correctly implements loop structure (2 pts)\n'
                       '- Creates accurate pattern output (2 pts)\n'
                       '- Properly formats the display (1 pt)',
        },
        {
            'title': 'BMI Calculator',
            'description': 'Create a BMI calculator with separate functions for calculation and categorization. '
                           'Practice parameters, return values, and organizing code.',
            'requirements': '- Create a function to calculate BMI from weight and height\n'
                            '- Create another function to categorize BMI (underweight, normal, overweight)\n'
                            '- Main program should call both functions\n'
                            '- Display BMI value and category to user',
            'rubrics': '- Correctly defines functions with parameters and return statements (2 pts)\n'
                       '- Accurate BMI calculation formula (2 pts)\n'
                       '- Proper function calls and result handling (1 pt)',
        },
        {
            'title': 'Shopping List Manager',
            'description': 'Build a program that manages a shopping list. '
                           'Practice adding, removing, and displaying list items.',
            'requirements': '- Create an empty list to store shopping items\n'
                            '- Add at least 5 items to the list using input()\n'
                            '- Display all items in the list\n'
                            '- Count and display total number of items',
            'rubrics': '- Correctly creates and populates list (2 pts)\n'
                       '- Successfully adds items and displays list contents (2 pts)\n'
                       '- Implements item counting logic (1 pt)',
        },
        {
            'title': 'Username Validator',
            'description': 'Create a program that validates usernames against a set of rules. '
                           'Practice string methods and character checks.',
            'requirements': '- Prompt user to enter a username\n'
                            '- Check if username length is between 6 and 12 characters\n'
                            '- Verify username contains only letters and numbers (no spaces)\n'
                            '- Display whether username is valid or invalid with reason',
            'rubrics': '- Correctly checks string length (2 pts)\n'
                       '- Properly validates character types using string methods (2 pts)\n'
                       '- Provides clear validation feedback to user (1 pt)',
        },
    ],
}


def fallback_projects(language) -> list:
    language = Language.parse(language)
    return [
        {**template, 'language': language.value, 'sample_output': '', 'is_ai_generated': False}
        for template in FALLBACK_TEMPLATES[language]
    ]


def generate_projects(ai_service, survey: dict, language, count: int = PROJECTS_PER_LANGUAGE) -> list:
    """
    Generate `count` projects for one language.

    Projects the model tags with another language are dropped. When the model
    fails or yields fewer than `count`, the gap is filled from the templates.
    """
    language = Language.parse(language)
    projects = []
    if ai_service is not None and ai_service.is_configured:
        try:
            text = ai_service.generate(build_generation_prompt(survey, language, count),
                                       temperature=0.9, max_tokens=3000)
            for project in parse_projects(text):
                if project['language'].strip().lower() == language.value:
                    project['language'] = language.value
                    projects.append(project)
        except ExternalServiceError as e:
            logger.warning(f"AI project generation failed, using fallback templates: {e.message}")

    if len(projects) < count:
        logger.info(f"Generated {len(projects)} {language.value} projects, filling {count - len(projects)} "
                    f"from templates")
        taken = {p['title'].lower() for p in projects}
        for template in fallback_projects(language):
            if len(projects) >= count:
                break
            if template['title'].lower() not in taken:
                projects.append(template)
    return projects[:count]


def generate_weekly_projects(ai_service, surveys: list) -> list:
    """
    One batch per surveyed language, in java-then-python order.

    A student without any survey gets both languages from an empty profile.
    """
    by_language = {}
    for survey in surveys or []:
        try:
            by_language[Language.parse(survey.get('primary_language'))] = survey
        except ValidationError:
            logger.warning(f"Skipping survey with language {survey.get('primary_language')!r}")
    if not by_language:
        by_language = {language: {} for language in Language}

    recommendations = []
    for language in Language:
        if language in by_language:
            recommendations.extend(generate_projects(ai_service, by_language[language], language))
    return recommendations


def generate_week_for_user(database, ai_service, user_id: str, retention_weeks: int = 52,
                           now: datetime = None) -> dict:
    """
    Generate next week's projects for a student and store them as a new week.

    The AI calls happen before the record is read for writing, so a slow model
    never holds a stale copy; the new week is ``current_week_number + 1`` of the
    record as it is when saved.
    """
    now = now or datetime.utcnow()
    recommendations = generate_weekly_projects(ai_service, database.surveys.for_user(user_id))
    week_start, week_end = week_bounds(now)

    def apply(record):
        week_number = (record.get('current_week_number') or 0) + 1
        updated = add_weekly_generated_projects(record, recommendations, week_number=week_number,
                                                week_start=week_start, week_end=week_end, now=now)
        updated['week_start_date'] = week_start
        return prune_history(updated, retention_weeks)

    record = database.mini_projects.mutate(user_id, apply)
    logger.info(f"Generated {len(recommendations)} projects for user {user_id} "
                f"(week {record['current_week_number']})")
    return record

#!/usr/bin/env python3
"""
Prompt templates and fixed user-facing messages for the tutoring client.
"""

# =============================================================================
# LESSONS & EXERCISES
# =============================================================================

LESSON_PROMPT = """Generate a new lesson for an interactive Python course.
The topic is {topic}. Include an explanation, a simple code example, and an exercise for the user to complete.
Structure the response using Markdown and start it with a level-1 heading naming the topic.
The exercise should have a clear goal and an empty code block for the user to fill in.
{language_instruction}"""


EXERCISE_PROMPT = """Generate a new and more challenging exercise based on the current topic: {topic}.
The exercise should be self-contained and ready for the student to solve.
It should include a clear problem description and an empty code block.
Start the response with a level-1 heading naming the topic.
{language_instruction}"""


# =============================================================================
# TUTOR FEEDBACK
# =============================================================================

TUTOR_PROMPT = """You are a supportive Python tutor helping a beginner.

The student will write Python code. Your role is to:
- Encourage the student.
- Provide step-by-step **hints**, not full answers.
- Only give full solutions if the student explicitly says something like "show me the full answer" or "I give up".
- Use a friendly, constructive tone.
- Always explain **why** a suggestion is helpful.
- If there's an error, give a hint about what might be wrong and how to fix it.

Here is the student's code:
```python
{code}
```

{feedback_request}
Give your coaching feedback now.
{language_instruction}"""


STUDENT_SAID = 'The student said: "{request}"'

OUTPUT_FEEDBACK = 'The output was: "{output}". Please check if the exercise was completed correctly.'

ERROR_FEEDBACK = 'It resulted in an error: "{error}"'


# =============================================================================
# FIXED CONVERSATION TURNS
# =============================================================================

WELCOME_MESSAGE = "Hello! Welcome to your Python course. I'm your AI tutor. Ask me anything!"

NEW_EXERCISE_MESSAGE = "Okay, here's a new challenge for you! Let me know if you need any help."


# =============================================================================
# LOADING MESSAGES
# =============================================================================

LOADING_INITIALIZING = 'Initializing Python environment...'
LOADING_GENERATING_CONTENT = 'Generating content...'
LOADING_GENERATING_LESSON = 'Generating a new lesson...'
LOADING_GENERATING_EXERCISE = 'Generating a new exercise...'
LOADING_RUNNING_CODE = 'Running your code...'
LOADING_THINKING = 'The tutor is thinking...'


# =============================================================================
# ERRORS & NOTICES
# =============================================================================

ENGINE_NOT_READY = 'The Python environment is still loading. Please wait a moment.'
API_CONNECTION = 'Could not connect to the AI tutor. Please try again.'
API_RATE_LIMIT = 'API rate limit exceeded.'
DEFAULT_ERROR = "Sorry, I'm having trouble connecting right now. Please try again later."
UNEXPECTED_RESPONSE = 'LLM response format is unexpected or content is missing.'

EMPTY_CODE = 'Please enter some code to run.'
NO_OUTPUT = 'Code executed successfully, no output.'
EXIT_WITHOUT_MESSAGE = 'The program exited with an error but printed no message.'

LESSON_FAILED = 'Failed to generate lesson. Please try again.'
EXERCISE_FAILED = 'Failed to generate new exercise. Please try again.'
CHAT_FAILED = 'Failed to send message. Please try again.'
FEEDBACK_FAILED = 'Could not get feedback from the tutor. Please try again.'


def language_instruction(language_name: str) -> str:
    """Ask the tutor to answer in the learner's language"""
    return f"Respond in {language_name}."


def build_lesson_prompt(topic: str, language_name: str) -> str:
    return LESSON_PROMPT.format(
        topic=topic,
        language_instruction=language_instruction(language_name),
    )


def build_exercise_prompt(topic: str, language_name: str) -> str:
    return EXERCISE_PROMPT.format(
        topic=topic,
        language_instruction=language_instruction(language_name),
    )


def build_tutor_prompt(code: str, feedback_request: str, language_name: str) -> str:
    """Tutor prompt around the student's code; an empty request adds nothing"""
    request = STUDENT_SAID.format(request=feedback_request) if feedback_request else ''
    return TUTOR_PROMPT.format(
        code=code,
        feedback_request=request,
        language_instruction=language_instruction(language_name),
    )


def build_feedback_request(output: str = None, error: str = None) -> str:
    """Frame a run result for the tutor: errors win over output"""
    if error:
        return ERROR_FEEDBACK.format(error=error)
    return OUTPUT_FEEDBACK.format(output=output or '')

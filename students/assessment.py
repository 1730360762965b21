"""Educational assessment questions and the read model admins see.

An assessment is either STRUCTURED (a list of typed responses) or LEGACY
(two free-form blobs from the first version of the questionnaire). Readers
branch on ``Assessment.kind`` via ``assessment_summary``.
"""

from dataclasses import dataclass

from .models import Assessment, AssessmentResponse

CHOICES = ["No", "Often", "Yes Consistently"]
NO_ANSWER = "No Answer"

STUDY_QUESTIONS = [
    "Do you often plan and organize your study sessions in advance and track your progress for the result?",
    "Do you use your own study strategies to read and understand the material?",
    "How often do you review your class notes or study materials before exams?",
    "Do you often find yourself unprepared for exams because you haven't completed your readings?",
    "Do you regularly feel that your scores or grades reflect your potential in the subject?",
    "Are you satisfied with your current academic performance compared to your peers?",
    "Do you often seek additional resources such as extra courses, books, or online websites or guidance from others to enhance your understanding?",
]

PERSONALITY_QUESTIONS = [
    ("Procrastinator", "Do you often find yourself waiting until the last minute to start your tasks, study, or exam preparation even if you know they are important?"),
    ("Perfectionism", "Do you tend to focus excessively on minor details of a task, striving for perfection?"),
    ("Unmotivated", "Do you often feel unmotivated about starting your study, tasks or exam preparation, even if you know they are important?"),
    ("Fearful", "Do you often feel anxious about making decisions or participating in situations that require public speaking, group discussion or social interaction?"),
    ("Overwhelmed", "Do you often feel overwhelmed by your responsibilities, tasks, or academic workload, leading to a sense of being unable to cope, and do you often dwell on these feelings of inadequacy?"),
    ("Distracted", "Do you often find it difficult to focus on tasks or your study, easily distracted by your thoughts, social media or your surroundings?"),
    ("Disorganized", "Do you often find it difficult to stay organized?"),
    ("Passive", "Do you tend to agree to things without considering your feelings, often feeling unheard or taken advantage of, and do you find it difficult to express your wants and needs directly?"),
    ("Overachiever", "Do you often set high standards for yourself, constantly striving for top scores or excellent results and feeling the pressure to meet high standards often leading to thorough preparation, sometimes find it difficult to relax?"),
    ("Passive-Aggressive", "Do you tend to avoid confrontation, expressing dissatisfaction indirectly or subtly, and do you often feel resentment or anger without directly communicating it, perhaps through sarcasm or procrastination?"),
]


def build_responses(habit_answers, personality_answers):
    """Turn ``{index: answer}`` maps into unsaved AssessmentResponse rows.

    Unanswered questions are stored as NO_ANSWER.
    """
    responses = []
    for i, question in enumerate(STUDY_QUESTIONS):
        responses.append(AssessmentResponse(
            key=f"habit-{i}",
            category=AssessmentResponse.Category.STUDY_HABITS,
            question=question,
            answer=habit_answers.get(i) or NO_ANSWER,
            sort_order=len(responses),
        ))
    for i, (label, question) in enumerate(PERSONALITY_QUESTIONS):
        responses.append(AssessmentResponse(
            key=f"personality-{i}",
            category=AssessmentResponse.Category.PERSONALITY,
            question=question,
            label=label,
            answer=personality_answers.get(i) or NO_ANSWER,
            sort_order=len(responses),
        ))
    return responses


@dataclass(frozen=True)
class StructuredAssessment:
    submitted_at: object
    study_habits: tuple
    personality: tuple

    kind = Assessment.Kind.STRUCTURED

    def as_dict(self):
        return {
            "kind": str(self.kind),
            "submitted_at": self.submitted_at.isoformat(),
            "study_habits": [
                {"question": r.question, "answer": r.answer}
                for r in self.study_habits
            ],
            "personality": [
                {"label": r.label, "question": r.question, "answer": r.answer}
                for r in self.personality
            ],
        }


@dataclass(frozen=True)
class LegacyAssessment:
    submitted_at: object
    study_habits: dict
    personality: dict

    kind = Assessment.Kind.LEGACY

    def as_dict(self):
        return {
            "kind": str(self.kind),
            "submitted_at": self.submitted_at.isoformat(),
            "study_habits": dict(self.study_habits),
            "personality": dict(self.personality),
        }


def assessment_summary(assessment):
    """Return the variant read model for *assessment* (or None)."""
    if assessment is None:
        return None
    if assessment.kind == Assessment.Kind.LEGACY:
        return LegacyAssessment(
            submitted_at=assessment.submitted_at,
            study_habits=assessment.study_habits or {},
            personality=assessment.personality or {},
        )
    responses = list(assessment.responses.all())
    return StructuredAssessment(
        submitted_at=assessment.submitted_at,
        study_habits=tuple(
            r for r in responses
            if r.category == AssessmentResponse.Category.STUDY_HABITS
        ),
        personality=tuple(
            r for r in responses
            if r.category == AssessmentResponse.Category.PERSONALITY
        ),
    )

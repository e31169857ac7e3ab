"""Built-in exam and question pool for the in-memory backend and the mock run script."""
from exam_session.models import Exam, Question

SAMPLE_EXAM = Exam(
    id="general-knowledge",
    title="General Knowledge",
    description="Ten questions drawn from a mixed pool. 30 minutes.",
    duration_minutes=30,
    total_questions=10,
    passing_score=70,
    is_active=True,
)

SAMPLE_QUESTIONS = [
    Question(id="q01", question="What is 2 + 2?", options=["3", "4", "5", "6"], correct_option=1,
             category="arithmetic", difficulty="easy"),
    Question(id="q02", question="What is the capital of France?", options=["London", "Berlin", "Paris", "Madrid"],
             correct_option=2, category="geography", difficulty="easy"),
    Question(id="q03", question="What is the time complexity of binary search?",
             options=["O(n)", "O(log n)", "O(n^2)", "O(1)"], correct_option=1, category="computing",
             difficulty="medium"),
    Question(id="q04", question="HTTP status for Not Found?", options=["200", "404", "500"], correct_option=1,
             category="computing", difficulty="easy"),
    Question(id="q05", question="Which planet is closest to the Sun?", options=["Venus", "Mercury", "Mars", "Earth"],
             correct_option=1, category="science", difficulty="easy"),
    Question(id="q06", question="What is 12 x 12?", options=["124", "144", "132", "156"], correct_option=1,
             category="arithmetic", difficulty="easy"),
    Question(id="q07", question="Which gas do plants absorb for photosynthesis?",
             options=["Oxygen", "Nitrogen", "Carbon dioxide", "Hydrogen"], correct_option=2, category="science",
             difficulty="easy"),
    Question(id="q08", question="Which data structure is FIFO?", options=["Stack", "Queue", "Tree", "Graph"],
             correct_option=1, category="computing", difficulty="easy"),
    Question(id="q09", question="What is the largest ocean?", options=["Atlantic", "Indian", "Arctic", "Pacific"],
             correct_option=3, category="geography", difficulty="easy"),
    Question(id="q10", question="What is the square root of 81?", options=["7", "8", "9", "10"], correct_option=2,
             category="arithmetic", difficulty="easy"),
    Question(id="q11", question="Which language runs in a web browser natively?",
             options=["Python", "JavaScript", "C", "Go"], correct_option=1, category="computing",
             difficulty="medium"),
    Question(id="q12", question="How many continents are there?", options=["5", "6", "7", "8"], correct_option=2,
             category="geography", difficulty="easy"),
]

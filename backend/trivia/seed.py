"""Starter content for local development: demo users, topics, questions."""

from trivia import db
from trivia.models import Question, Topic, User

DEMO_USERS = ('testuser1', 'testuser2', 'testuser3')
DEMO_PASSWORD = 'password'

# (type, difficulty, text, [option texts], [correct option indexes], explanation)
TOPICS = {
    'General Knowledge': ('A bit of everything', [
        ('single_correct', 'easy', 'How many days are in a leap year?', ['365', '366', '364', '367'], [1],
         'A leap year adds February 29th.'),
        ('single_correct', 'easy', 'What colour do you get by mixing blue and yellow?', ['Green', 'Purple', 'Orange', 'Brown'], [0], None),
        ('true_false', 'easy', 'A dozen means twelve.', ['True', 'False'], [0], None),
        ('single_correct', 'easy', 'How many continents are there?', ['5', '6', '7', '8'], [2], None),
        ('single_correct', 'easy', 'Which animal is known as the king of the jungle?', ['Tiger', 'Lion', 'Elephant', 'Gorilla'], [1], None),
        ('single_correct', 'medium', 'What is the largest ocean on Earth?', ['Atlantic', 'Indian', 'Arctic', 'Pacific'], [3], None),
        ('multi_correct', 'medium', 'Which of these are primary colours of light?', ['Red', 'Yellow', 'Green', 'Blue'], [0, 2, 3],
         'Additive mixing uses red, green and blue.'),
        ('single_correct', 'medium', 'How many strings does a standard violin have?', ['4', '5', '6', '7'], [0], None),
        ('true_false', 'medium', 'The Great Wall of China is visible from the Moon with the naked eye.', ['True', 'False'], [1],
         'It is far too narrow to be seen from that distance.'),
        ('single_correct', 'medium', 'Which language has the most native speakers?', ['English', 'Spanish', 'Mandarin Chinese', 'Hindi'], [2], None),
        ('single_correct', 'hard', 'In which year did the first modern Olympic Games take place?', ['1886', '1896', '1900', '1912'], [1],
         'Athens hosted them in 1896.'),
        ('multi_correct', 'hard', 'Which of these countries are landlocked?', ['Bolivia', 'Chile', 'Mongolia', 'Portugal'], [0, 2], None),
        ('single_correct', 'hard', 'What is the smallest country in the world by area?', ['Monaco', 'Nauru', 'Vatican City', 'San Marino'], [2], None),
    ]),
    'Science': ('Physics, chemistry and biology', [
        ('single_correct', 'easy', 'What gas do plants absorb from the air?', ['Oxygen', 'Carbon dioxide', 'Nitrogen', 'Helium'], [1], None),
        ('true_false', 'easy', 'Water boils at 100 degrees Celsius at sea level.', ['True', 'False'], [0], None),
        ('single_correct', 'easy', 'Which planet is known as the Red Planet?', ['Venus', 'Jupiter', 'Mars', 'Mercury'], [2], None),
        ('single_correct', 'easy', 'How many legs does an insect have?', ['4', '6', '8', '10'], [1], None),
        ('single_correct', 'easy', 'What is the chemical symbol for gold?', ['Go', 'Gd', 'Au', 'Ag'], [2], 'From the Latin aurum.'),
        ('single_correct', 'medium', 'What is the powerhouse of the cell?', ['Nucleus', 'Ribosome', 'Mitochondrion', 'Golgi apparatus'], [2], None),
        ('multi_correct', 'medium', 'Which of these are noble gases?', ['Neon', 'Nitrogen', 'Argon', 'Hydrogen'], [0, 2], None),
        ('single_correct', 'medium', 'What is the speed of light in a vacuum, approximately?', ['300,000 km/s', '150,000 km/s', '30,000 km/s', '3,000 km/s'], [0], None),
        ('true_false', 'medium', 'Sound travels faster in water than in air.', ['True', 'False'], [0], None),
        ('single_correct', 'medium', 'What is the hardest natural substance?', ['Quartz', 'Diamond', 'Topaz', 'Corundum'], [1], None),
        ('single_correct', 'hard', 'What is the atomic number of carbon?', ['4', '6', '8', '12'], [1], None),
        ('multi_correct', 'hard', 'Which of these particles are leptons?', ['Electron', 'Proton', 'Muon', 'Neutron'], [0, 2],
         'Protons and neutrons are made of quarks.'),
        ('single_correct', 'hard', 'Who proposed the uncertainty principle?', ['Bohr', 'Schrodinger', 'Heisenberg', 'Dirac'], [2], None),
    ]),
    'History': ('People and events that shaped the world', [
        ('single_correct', 'easy', 'Who was the first President of the United States?', ['Lincoln', 'Washington', 'Jefferson', 'Adams'], [1], None),
        ('true_false', 'easy', 'The Titanic sank on its maiden voyage.', ['True', 'False'], [0], None),
        ('single_correct', 'easy', 'Which ancient civilization built the pyramids of Giza?', ['Romans', 'Greeks', 'Egyptians', 'Persians'], [2], None),
        ('single_correct', 'easy', 'In which city did the Berlin Wall stand?', ['Berlin', 'Vienna', 'Prague', 'Warsaw'], [0], None),
        ('single_correct', 'easy', 'Who painted the Mona Lisa?', ['Michelangelo', 'Raphael', 'Leonardo da Vinci', 'Donatello'], [2], None),
        ('single_correct', 'medium', 'In which year did World War II end?', ['1943', '1944', '1945', '1946'], [2], None),
        ('multi_correct', 'medium', 'Which of these were Allied powers in World War II?', ['United Kingdom', 'Italy', 'Soviet Union', 'Japan'], [0, 2], None),
        ('single_correct', 'medium', 'Who was the first woman to win a Nobel Prize?', ['Marie Curie', 'Rosalind Franklin', 'Ada Lovelace', 'Lise Meitner'], [0], None),
        ('true_false', 'medium', 'Napoleon Bonaparte was born in Corsica.', ['True', 'False'], [0], None),
        ('single_correct', 'medium', 'Which empire was ruled by Genghis Khan?', ['Ottoman', 'Mongol', 'Byzantine', 'Mughal'], [1], None),
        ('single_correct', 'hard', 'In which year was the Magna Carta sealed?', ['1066', '1215', '1348', '1492'], [1], None),
        ('multi_correct', 'hard', 'Which of these cities were capitals of the Byzantine Empire?', ['Constantinople', 'Rome', 'Nicaea', 'Alexandria'], [0, 2],
         'Nicaea served as capital while Constantinople was under Latin rule.'),
        ('single_correct', 'hard', 'Who was the last Pharaoh of ancient Egypt?', ['Nefertiti', 'Cleopatra VII', 'Ramses II', 'Hatshepsut'], [1], None),
    ]),
}


def _options(texts):
    labels = 'ABCDEFGH'
    return [{'id': labels[i].lower(), 'label': labels[i], 'text': t} for i, t in enumerate(texts)]


def seed_users():
    created = 0
    for username in DEMO_USERS:
        if User.query.filter_by(username=username).first():
            continue
        user = User(username=username)
        user.set_password(DEMO_PASSWORD)
        db.session.add(user)
        created += 1
    db.session.commit()
    return created


def seed_content():
    topics_created = 0
    questions_created = 0
    for name, (description, rows) in TOPICS.items():
        topic = Topic.query.filter_by(name=name).first()
        if not topic:
            topic = Topic(name=name, description=description)
            db.session.add(topic)
            db.session.flush()
            topics_created += 1
        existing = {q.text for q in Question.query.filter_by(topic_id=topic.id).all()}
        for qtype, difficulty, text, option_texts, correct, explanation in rows:
            if text in existing:
                continue
            options = _options(option_texts)
            question = Question(topic_id=topic.id, type=qtype, difficulty=difficulty, text=text, explanation=explanation)
            question.options = options
            question.correct_answer_ids = [options[i]['id'] for i in correct]
            db.session.add(question)
            questions_created += 1
    db.session.commit()
    return topics_created, questions_created


def seed_all(with_users=True):
    users = seed_users() if with_users else 0
    topics, questions = seed_content()
    return {'users': users, 'topics': topics, 'questions': questions}

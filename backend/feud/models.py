from feud import db
import json


class BankQuestion(db.Model):
    """A question in the persistent bank; games copy these at creation time."""
    __tablename__ = 'bank_question'
    id = db.Column(db.Integer, primary_key=True)
    question = db.Column(db.Text, nullable=False)
    category = db.Column(db.String(128), nullable=True)
    level = db.Column(db.String(32), nullable=False, default='beginner')  # tossup, beginner, intermediate, advanced
    answers = db.Column(db.Text, nullable=False)  # JSON-encoded list of {text, score}
    used = db.Column(db.Boolean, default=False, nullable=False)

    def to_record(self):
        try:
            answers = json.loads(self.answers) if self.answers else []
        except ValueError:
            answers = []
        return {
            'id': str(self.id),
            'question': self.question,
            'category': self.category,
            'level': self.level,
            'answers': answers,
        }

    def to_dict(self):
        record = self.to_record()
        record['used'] = self.used
        return record

from flask import Blueprint, jsonify
from flask_login import login_required

from trivia.errors import NotFoundError
from trivia.services import topics as topic_catalog

topics = Blueprint('topics', __name__)


@topics.route('/topics', methods=['GET'])
@login_required
def list_topics():
    return jsonify({'topics': topic_catalog.list_available()})


@topics.route('/topics/<int:topic_id>', methods=['GET'])
@login_required
def get_topic(topic_id):
    topic = topic_catalog.get_by_id(topic_id)
    if not topic:
        raise NotFoundError('TOPIC_NOT_FOUND', f'Topic with ID {topic_id} not found')
    data = topic.to_dict()
    data['question_counts'] = topic_catalog.question_counts(topic.id)
    return jsonify({'topic': data})

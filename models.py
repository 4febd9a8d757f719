import logging
import os
from datetime import datetime

from pymongo import MongoClient, ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from errors import ConcurrentModificationError, ConflictError, NotFoundError
from utils.classrooms import add_student, generate_code, is_member, normalize_code
from utils.mini_projects import new_record

logger = logging.getLogger(__name__)

SAVE_ATTEMPTS = 3
CODE_ATTEMPTS = 5


class Database:
    """
    MongoDB connection plus one repository per collection.

    Either pass a ready database handle (tests hand in a mongomock database)
    or call ``init_app`` / ``connect`` to open one from configuration.
    """

    def __init__(self, handle=None):
        self.client = None
        self.db = None
        if handle is not None:
            self._bind(handle)

    def init_app(self, app):
        if self.db is not None:
            return
        # Support Railway's MONGO_URL or standard MONGODB_URI
        mongodb_uri = (
            app.config.get('MONGODB_URI') or
            os.getenv('MONGO_URL') or
            os.getenv('MONGODB_URI')
        )
        self.connect(mongodb_uri, app.config.get('MONGODB_DB', 'skillverse'))

    def connect(self, mongodb_uri: str, db_name: str = 'skillverse'):
        if not mongodb_uri:
            raise ValueError("No MongoDB connection string found. Set MONGODB_URI or MONGO_URL.")
        self.client = MongoClient(mongodb_uri)
        self._bind(self.client.get_database(db_name))
        logger.info(f"Connected to MongoDB database '{db_name}'")
        return self

    def _bind(self, handle):
        self.db = handle
        self._create_indexes()
        self.users = UserRepository(handle)
        self.mini_projects = MiniProjectRepository(handle)
        self.classrooms = ClassroomRepository(handle)
        self.activities = ActivityRepository(handle)
        self.assignments = AssignmentRepository(handle)
        self.surveys = SurveyRepository(handle)

    def _create_indexes(self):
        self.db.users.create_index('user_id', unique=True)
        self.db.users.create_index('email', unique=True)
        self.db.mini_projects.create_index('user_id', unique=True)
        self.db.classrooms.create_index('classroom_id', unique=True)
        self.db.classrooms.create_index('code', unique=True)
        self.db.classrooms.create_index('teacher_id')
        self.db.classrooms.create_index('students.student_id')

        for name, id_field in (('activities', 'activity_id'), ('assignments', 'assignment_id')):
            collection = self.db[name]
            collection.create_index(id_field, unique=True)
            collection.create_index([('classroom_id', ASCENDING), ('is_published', ASCENDING)])
            collection.create_index([('teacher_id', ASCENDING), ('created_at', DESCENDING)])
            collection.create_index('due_date')

        self.db.surveys.create_index([('user_id', ASCENDING), ('primary_language', ASCENDING)], unique=True)

    def close(self):
        if self.client is not None:
            self.client.close()


db = Database()


# ============================================================================
# REPOSITORIES
# ============================================================================

class Repository:
    collection_name = None
    id_field = None
    not_found_message = 'Not found'

    def __init__(self, handle):
        self.collection = handle[self.collection_name]

    def find_one(self, query):
        return self.collection.find_one(query)

    def find(self, query, sort=None):
        cursor = self.collection.find(query)
        if sort:
            cursor = cursor.sort(sort)
        return list(cursor)

    def insert_one(self, document):
        return self.collection.insert_one(document).inserted_id

    def update_one(self, query, update, upsert=False):
        return self.collection.update_one(query, update, upsert=upsert)

    def delete_one(self, query):
        return self.collection.delete_one(query)

    def count(self, query):
        return self.collection.count_documents(query)

    def get(self, entity_id):
        document = self.find_one({self.id_field: entity_id})
        if document is None:
            raise NotFoundError(self.not_found_message)
        return document

    def save(self, document: dict) -> dict:
        """
        Replace a document if nobody else saved it since it was read.

        Raises:
            ConcurrentModificationError: the stored revision moved on
        """
        revision = document.get('revision', 0)
        replacement = {k: v for k, v in document.items() if k != '_id'}
        replacement['revision'] = revision + 1
        replacement['updated_at'] = datetime.utcnow()

        query = {self.id_field: document[self.id_field]}
        if 'revision' in document:
            query['revision'] = revision
        else:
            # Documents written before revisions existed have no field at all
            query['revision'] = {'$exists': False}

        result = self.collection.replace_one(query, replacement)
        if result.matched_count == 0:
            if self.find_one({self.id_field: document[self.id_field]}) is None:
                raise NotFoundError(self.not_found_message)
            raise ConcurrentModificationError()
        return replacement

    def mutate(self, entity_id, fn, attempts: int = SAVE_ATTEMPTS) -> dict:
        """Read, apply ``fn(document) -> document`` and save, retrying on concurrent writes."""
        for attempt in range(1, attempts + 1):
            current = self.get(entity_id)
            updated = fn(current)
            try:
                return self.save(updated)
            except ConcurrentModificationError:
                logger.warning(f"Concurrent update on {self.collection_name} {entity_id} "
                               f"(attempt {attempt}/{attempts})")
        raise ConcurrentModificationError()


class UserRepository(Repository):
    collection_name = 'users'
    id_field = 'user_id'
    not_found_message = 'User not found'

    def find_by_email(self, email: str):
        return self.find_one({'email': (email or '').strip().lower()})

    def create(self, user: dict) -> dict:
        user = dict(user, email=user['email'].strip().lower())
        user.setdefault('created_at', datetime.utcnow())
        user.setdefault('updated_at', user['created_at'])
        try:
            self.insert_one(user)
        except DuplicateKeyError:
            raise ConflictError("User with this email already exists")
        return user

    def update_fields(self, user_id: str, fields: dict):
        fields = dict(fields, updated_at=datetime.utcnow())
        return self.collection.find_one_and_update(
            {'user_id': user_id}, {'$set': fields}, return_document=ReturnDocument.AFTER
        )


class MiniProjectRepository(Repository):
    collection_name = 'mini_projects'
    id_field = 'user_id'
    not_found_message = 'Mini project data not found'

    def create(self, user_id: str) -> dict:
        """Insert the empty record for a new student; at most one per user."""
        record = new_record(user_id)
        try:
            self.insert_one(record)
        except DuplicateKeyError:
            raise ConflictError(f"Mini project record already exists for {user_id}")
        return record

    def get_or_create(self, user_id: str) -> dict:
        record = self.find_one({'user_id': user_id})
        if record is not None:
            return record
        try:
            return self.create(user_id)
        except ConflictError:
            return self.get(user_id)

    def with_generation_enabled(self):
        return self.find({'generation_enabled': True})

    def all_user_ids(self) -> list:
        return [doc['user_id'] for doc in self.collection.find({}, {'user_id': 1})]


class ClassroomRepository(Repository):
    collection_name = 'classrooms'
    id_field = 'classroom_id'
    not_found_message = 'Classroom not found'

    def create(self, classroom: dict, attempts: int = CODE_ATTEMPTS, code_factory=generate_code) -> dict:
        """
        Insert a classroom with a fresh join code, drawing a new code when the
        unique index rejects one.
        """
        for attempt in range(1, attempts + 1):
            document = dict(classroom, code=code_factory())
            try:
                self.insert_one(document)
                logger.info(f"Created classroom {document['classroom_id']} with code {document['code']}")
                return document
            except DuplicateKeyError:
                logger.warning(f"Classroom code collision (attempt {attempt}/{attempts})")
        raise ConflictError("Could not generate a unique classroom code")

    def find_by_code(self, code: str):
        return self.find_one({'code': normalize_code(code), 'is_active': True})

    def join_by_code(self, code: str, student_id: str) -> dict:
        classroom = self.find_by_code(code)
        if classroom is None:
            raise NotFoundError("Invalid classroom code")
        if is_member(classroom, student_id):
            raise ConflictError("You are already enrolled in this classroom")
        return self.mutate(classroom['classroom_id'], lambda c: add_student(c, student_id))

    def for_teacher(self, teacher_id: str, include_archived: bool = False):
        query = {'teacher_id': teacher_id}
        if not include_archived:
            query['is_active'] = True
        return self.find(query, sort=[('created_at', DESCENDING)])

    def for_student(self, student_id: str):
        return self.find({'students.student_id': student_id, 'is_active': True},
                         sort=[('created_at', DESCENDING)])


class _ClassworkRepository(Repository):

    def for_classroom(self, classroom_id: str, published_only: bool = False):
        query = {'classroom_id': classroom_id}
        if published_only:
            query['is_published'] = True
        return self.find(query, sort=[('created_at', DESCENDING)])

    def for_teacher(self, teacher_id: str):
        return self.find({'teacher_id': teacher_id}, sort=[('created_at', DESCENDING)])

    def create(self, document: dict) -> dict:
        document = dict(document)
        document.setdefault('revision', 0)
        self.insert_one(document)
        return document


class ActivityRepository(_ClassworkRepository):
    collection_name = 'activities'
    id_field = 'activity_id'
    not_found_message = 'Activity not found'


class AssignmentRepository(_ClassworkRepository):
    collection_name = 'assignments'
    id_field = 'assignment_id'
    not_found_message = 'Assignment not found'


class SurveyRepository(Repository):
    collection_name = 'surveys'
    id_field = 'user_id'
    not_found_message = 'Survey not found'

    def upsert(self, user_id: str, primary_language: str, fields: dict) -> dict:
        """One survey per (user, language); a resubmission overwrites the answers."""
        now = datetime.utcnow()
        return self.collection.find_one_and_update(
            {'user_id': user_id, 'primary_language': primary_language},
            {'$set': dict(fields, updated_at=now), '$setOnInsert': {'created_at': now}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )

    def for_user(self, user_id: str):
        return self.find({'user_id': user_id}, sort=[('created_at', DESCENDING)])

    def get_for_language(self, user_id: str, primary_language: str):
        survey = self.find_one({'user_id': user_id, 'primary_language': primary_language})
        if survey is None:
            raise NotFoundError(self.not_found_message)
        return survey

    def set_analysis(self, user_id: str, primary_language: str, analysis: str):
        return self.update_one(
            {'user_id': user_id, 'primary_language': primary_language},
            {'$set': {'ai_analysis': analysis, 'analysis_generated_at': datetime.utcnow()}},
        )

from datetime import date

from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import SimpleTestCase

from apps.assignments.exceptions import ValidationError
from apps.assignments.services import normalize


class AssignTasksCommandTests(SimpleTestCase):

    def test_defaults(self):
        command = normalize.assign_tasks_command({
            'worker_id': 'w-1', 'project_id': 'p-1', 'task_ids': ['t-1', 't-2'], 'date': '2024-03-18',
        })
        self.assertEqual(command.task_ids, ('t-1', 't-2'))
        self.assertEqual(command.date, date(2024, 3, 18))
        self.assertEqual(command.priority, 'medium')
        self.assertEqual(command.dependencies, ())
        self.assertIsNone(command.daily_target)
        self.assertIsNone(command.estimated_minutes)

    def test_comma_separated_ids_and_target(self):
        command = normalize.assign_tasks_command({
            'worker': 'w-1',
            'project': 'p-1',
            'task_ids': 't-1, t-2',
            'date': '2024-03-18',
            'priority': 'HIGH',
            'daily_target': {'description': 'Plaster', 'quantity': '40', 'unit': 'sqft'},
            'estimated_minutes': '90',
        })
        self.assertEqual(command.task_ids, ('t-1', 't-2'))
        self.assertEqual(command.priority, 'high')
        self.assertEqual(command.daily_target.quantity, 40)
        self.assertEqual(command.daily_target.target_completion_percent, 100)
        self.assertEqual(command.estimated_minutes, 90)

    def test_rejections(self):
        base = {'worker_id': 'w-1', 'project_id': 'p-1', 'task_ids': ['t-1'], 'date': '2024-03-18'}
        bad_inputs = [
            ({'task_ids': []}, 'task_ids'),
            ({'task_ids': ['t-1', 't-1']}, 'task_ids'),
            ({'date': '18/03/2024'}, 'date'),
            ({'priority': 'urgent'}, 'priority'),
            ({'worker_id': ''}, 'worker_id'),
            ({'estimated_minutes': -5}, 'estimated_minutes'),
        ]
        for override, field in bad_inputs:
            with self.subTest(field=field, override=override):
                with self.assertRaises(ValidationError) as ctx:
                    normalize.assign_tasks_command({**base, **override})
                self.assertEqual(ctx.exception.details['field'], field)


class LocationTests(SimpleTestCase):

    def test_nested_and_flat_forms(self):
        nested = normalize.normalize_location({'location': {'latitude': '12.97', 'longitude': 77.59, 'accuracy': 8}})
        flat = normalize.normalize_location({'lat': 12.97, 'lng': '77.59'})
        self.assertEqual((nested.latitude, nested.longitude, nested.accuracy), (12.97, 77.59, 8))
        self.assertEqual((flat.latitude, flat.longitude, flat.accuracy), (12.97, 77.59, None))

    def test_optional_location(self):
        self.assertIsNone(normalize.normalize_location({}, required=False))
        with self.assertRaises(ValidationError):
            normalize.normalize_location({})

    def test_out_of_range(self):
        for payload in (
            {'latitude': 91, 'longitude': 0},
            {'latitude': 0, 'longitude': -181},
            {'latitude': 'north', 'longitude': 0},
            {'latitude': 'nan', 'longitude': 0},
            {'latitude': 10},
            {'latitude': 0, 'longitude': 0, 'accuracy': 5000},
        ):
            with self.subTest(payload=payload):
                with self.assertRaises(ValidationError):
                    normalize.normalize_location(payload)


class ProgressCommandTests(SimpleTestCase):

    def test_full_payload(self):
        command = normalize.progress_command('a-1', {
            'percent': '45.5',
            'description': ' Second coat ',
            'issues_encountered': ['', 'Ladder missing'],
            'expected_version': '3',
            'location': {'latitude': 12.97, 'longitude': 77.59},
        })
        self.assertEqual(command.percent, 45.5)
        self.assertEqual(command.description, 'Second coat')
        self.assertEqual(command.issues_encountered, ('Ladder missing',))
        self.assertEqual(command.expected_version, 3)
        self.assertIsNotNone(command.location)

    def test_percent_bounds(self):
        for percent in (-1, 100.5, None, True):
            with self.subTest(percent=percent):
                with self.assertRaises(ValidationError):
                    normalize.progress_command('a-1', {'percent': percent, 'description': 'x'})

    def test_percent_rounded_to_stored_precision(self):
        command = normalize.progress_command('a-1', {'percent': '99.999', 'description': 'x'})
        self.assertEqual(command.percent, 100)

    def test_description_required(self):
        with self.assertRaises(ValidationError) as ctx:
            normalize.progress_command('a-1', {'percent': 10, 'description': '   '})
        self.assertEqual(ctx.exception.details['field'], 'description')

    def test_too_many_issues(self):
        with self.assertRaises(ValidationError):
            normalize.progress_command('a-1', {
                'percent': 10, 'description': 'x', 'issues_encountered': [f'issue {n}' for n in range(11)],
            })


class IssueCommandTests(SimpleTestCase):

    def test_valid_issue(self):
        command = normalize.issue_command('a-1', {
            'issue_type': 'Safety_Concern',
            'priority': 'critical',
            'description': 'Scaffold is unstable on level 3',
        })
        self.assertEqual(command.issue_type, 'safety_concern')
        self.assertEqual(command.priority, 'critical')
        self.assertIsNone(command.location)

    def test_rejects_unknown_type_and_short_description(self):
        with self.assertRaises(ValidationError):
            normalize.issue_command('a-1', {'issue_type': 'aliens', 'description': 'Something odd happened'})
        with self.assertRaises(ValidationError):
            normalize.issue_command('a-1', {'issue_type': 'other', 'description': 'short'})


class PhotosCommandTests(SimpleTestCase):

    def test_uploads_with_captions(self):
        files = [
            SimpleUploadedFile('wall.JPG', b'\xff\xd8\xff', content_type='image/JPEG'),
            SimpleUploadedFile('floor.png', b'\x89PNG', content_type='image/png'),
        ]
        command = normalize.photos_command('a-1', files, ['East wall'])
        first, second = command.photos
        self.assertEqual((first.content_type, first.size, first.caption), ('image/jpeg', 3, 'East wall'))
        self.assertEqual(second.caption, '')
        self.assertIs(first.content, files[0])

    def test_no_files(self):
        with self.assertRaises(ValidationError):
            normalize.photos_command('a-1', [])


class IdentifierTests(SimpleTestCase):

    def test_blank_assignment_id(self):
        with self.assertRaises(ValidationError):
            normalize.complete_command(' ')

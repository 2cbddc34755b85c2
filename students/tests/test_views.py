# students/tests/test_views.py
from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse
from rest_framework.test import APIClient

from core.models import AcademicYear, Class
from shared.constants import FeeActions, PromotionTypes
from students.models import PromotionAudit, StudentPromotion
from students.workflow import PromotionWorkflow

from .fixtures import PromotionFixturesMixin

User = get_user_model()


class PromotionAPITest(PromotionFixturesMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.user = User.objects.create_user(
            username="principal", password="testpass123", first_name="Meera", last_name="Iyer"
        )
        self.client = APIClient()
        self.client.force_login(self.user)

        self.payer, self.debtor = self.students[0], self.students[1]
        self.add_dues(self.payer, '5000')
        self.add_dues(self.debtor, '30000')

    def post(self, name, data=None):
        return self.client.post(reverse(f'promotions:{name}'), data or {}, format='json')

    def start(self):
        return self.post('workflow_start', {'current_year_id': self.y1.pk, 'target_year_id': self.y2.pk})

    def test_readiness(self):
        response = self.client.get(reverse('promotions:readiness'), {'current': self.y1.pk, 'target': self.y2.pk})

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()['ready_for_promotion'])
        self.assertEqual(response.json()['total_students'], 10)

    def test_readiness_needs_both_years(self):
        response = self.client.get(reverse('promotions:readiness'), {'current': self.y1.pk})
        self.assertEqual(response.status_code, 400)

    def test_full_workflow(self):
        response = self.start()
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['workflow']['state'], 'validation')

        response = self.post('workflow_outstanding')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.json()['workflow']['outstanding']), 2)

        # camelCase keys from the dashboard
        response = self.post('workflow_actions', {
            'studentId': self.payer.pk, 'action': FeeActions.PAYMENT, 'paymentAmount': '5000',
        })
        self.assertEqual(response.json()['unassigned'], [str(self.debtor.pk)])
        self.post('workflow_actions', {'student_id': self.debtor.pk, 'action': FeeActions.BLOCK})

        response = self.post('workflow_confirm')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['confirmation']['to_promote'], 9)

        response = self.post('workflow_execute', {'idempotency_key': 'promo-2024'})
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body['result']['promoted'], 9)
        self.assertEqual(body['result']['payments'], 1)
        self.assertEqual(body['result']['blocked'], 1)
        self.assertEqual(body['toast']['title'], "Promotion Complete")
        self.assertEqual(
            body['toast']['description'],
            "Promoted 9 students; created 9 fee rows for 2024-25.",
        )

        self.assertEqual(AcademicYear.objects.current(), self.y2)
        self.assertEqual(PromotionAudit.objects.get().performed_by, "Meera Iyer")
        self.assertNotIn(PromotionWorkflow.SESSION_KEY, self.client.session)

    def test_confirm_with_unassigned_students(self):
        self.start()
        self.post('workflow_outstanding')

        response = self.post('workflow_confirm')

        self.assertEqual(response.status_code, 400)
        body = response.json()
        self.assertEqual(body['error_code'], "DUES_ACTIONS_MISSING")
        self.assertEqual(body['error'], "Please assign actions for all 2 students with outstanding fees.")
        self.assertEqual(body['toast']['variant'], "destructive")

    def test_step_without_open_workflow(self):
        response = self.post('workflow_outstanding')

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()['error_code'], "WORKFLOW_STATE_ERROR")

    def test_invalid_action(self):
        self.start()
        self.post('workflow_outstanding')

        response = self.post('workflow_actions', {'student_id': self.payer.pk, 'action': 'forgive'})
        self.assertEqual(response.status_code, 400)

    def test_back(self):
        self.start()
        self.post('workflow_outstanding')

        response = self.post('workflow_back')
        self.assertEqual(response.json()['workflow']['state'], 'validation')

    def test_individual_promotion(self):
        response = self.post('individual', {
            'target_academic_year_id': self.y2.pk,
            'promotion_data': [{
                'student_id': self.students[5].pk,
                'from_academic_year_id': self.y1.pk,
                'promotion_type': PromotionTypes.REPEATED,
                'reason': "Long illness",
            }],
        })

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['result']['repeated'], 1)
        self.assertEqual(StudentPromotion.objects.get().promoted_by, "Meera Iyer")

    def test_individual_promotion_missing_fee_plans(self):
        class8 = Class.objects.create(name="Class 8", section="A")

        response = self.post('individual', {
            'target_academic_year_id': self.y2.pk,
            'promotion_data': [{
                'student_id': self.students[5].pk,
                'from_academic_year_id': self.y1.pk,
                'to_class_id': class8.pk,
                'promotion_type': PromotionTypes.PROMOTED,
            }],
        })

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()['error_code'], "MISSING_FEE_PLANS")
        self.assertEqual(response.json()['details']['missing'], ["Class 8 (A)"])

from django.core.management.base import BaseCommand, CommandError
from django.conf import settings

from core.exceptions import SchoolManagementException
from core.models import AcademicYear
from shared.constants import FeeActions
from students.workflow import PromotionWorkflow


class Command(BaseCommand):
    help = 'Promote all Active students from one academic year to the next'

    def add_arguments(self, parser):
        parser.add_argument('--current', required=True, help='Name of the current academic year, e.g. 2023-24')
        parser.add_argument('--target', required=True, help='Name of the target academic year, e.g. 2024-25')
        parser.add_argument(
            '--carry-forward-all',
            action='store_true',
            help='Carry forward every outstanding balance into the target year',
        )
        parser.add_argument(
            '--block-all',
            action='store_true',
            help='Hold back every student with outstanding dues',
        )
        parser.add_argument('--promoted-by', default=None, help='Actor recorded on the promotion rows')
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would happen without writing anything',
        )

    def _year(self, name):
        try:
            return AcademicYear.objects.get(name=name)
        except AcademicYear.DoesNotExist:
            raise CommandError(f"Academic year '{name}' not found")

    def handle(self, *args, **options):
        if options['carry_forward_all'] and options['block_all']:
            raise CommandError("Use either --carry-forward-all or --block-all, not both")

        current = self._year(options['current'])
        target = self._year(options['target'])
        workflow = PromotionWorkflow(current.pk, target.pk)

        try:
            summary = workflow.run_validation()
            self.stdout.write(
                f"{summary['total_students']} active students, "
                f"sequential: {summary['is_sequential_year']}"
            )
            for name in summary['missing_fee_structures']:
                self.stdout.write(self.style.WARNING(f"Missing fee structure: {name}"))

            outstanding = workflow.proceed_to_outstanding()
            for due in outstanding.values():
                self.stdout.write(f"  {due['student_name']} ({due['admission_number']}): ₹{due['total_dues']}")

            if options['carry_forward_all'] or options['block_all']:
                action = FeeActions.CARRY_FORWARD if options['carry_forward_all'] else FeeActions.BLOCK
                for student_id in workflow.affected_student_ids():
                    workflow.assign_action(student_id, action)

            workflow.proceed_to_confirmation()
            confirmation = workflow.confirmation_summary()
            self.stdout.write(
                f"To promote: {confirmation['to_promote']}, carried forward: {confirmation['carried_forward']}, "
                f"blocked: {confirmation['blocked']}"
            )

            if options['dry_run']:
                self.stdout.write(self.style.WARNING("Dry run - nothing written"))
                return

            promoted_by = options['promoted_by'] or getattr(settings, 'PROMOTION_ACTOR_DEFAULT', 'Admin')
            result = workflow.execute(promoted_by=promoted_by)
        except SchoolManagementException as e:
            raise CommandError(e.message)

        for warning in result['warnings']:
            self.stdout.write(self.style.WARNING(warning))
        for error in result['errors'] + result['promotion_errors']:
            self.stdout.write(self.style.ERROR(f"  {error.get('student_id')}: {error.get('error')}"))

        self.stdout.write(self.style.SUCCESS(
            f"Promoted {result['promoted']} students; created {result['fee_rows_created']} "
            f"fee rows for {result['target_year']}."
        ))

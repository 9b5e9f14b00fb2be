"""
Management command to seed the database with sample data.

Usage: python manage.py seed_data [--users N] [--snippets N] [--clear]

Everything goes through the service modules, so points, levels, badges and
counters end up exactly as real traffic would leave them.
"""

import random
from django.core.management.base import BaseCommand
from django.contrib.auth.models import User
from django.db import transaction

from snippets import forks, lifecycle, services
from snippets.models import CodeFork, PointEvent, Snippet, SnippetComment


SAMPLE_SNIPPETS = [
    {
        'title': 'Two Sum',
        'problem_description': 'Return indices of the two numbers that add up to target.',
        'language': 'python',
        'tags': ['arrays', 'hashmap'],
        'code': (
            "def two_sum(nums, target):\n"
            "    seen = {}\n"
            "    for i, n in enumerate(nums):\n"
            "        if target - n in seen:\n"
            "            return [seen[target - n], i]\n"
            "        seen[n] = i\n"
        ),
    },
    {
        'title': 'Debounce',
        'problem_description': 'Delay a function call until input has settled.',
        'language': 'javascript',
        'tags': ['functions', 'timers'],
        'code': (
            "function debounce(fn, ms) {\n"
            "  let t;\n"
            "  return (...args) => { clearTimeout(t); t = setTimeout(() => fn(...args), ms); };\n"
            "}\n"
        ),
    },
    {
        'title': 'Reverse a Linked List',
        'problem_description': 'Reverse a singly linked list in place.',
        'language': 'java',
        'tags': ['linked-list'],
        'code': (
            "ListNode reverse(ListNode head) {\n"
            "    ListNode prev = null;\n"
            "    while (head != null) { ListNode next = head.next; head.next = prev; prev = head; head = next; }\n"
            "    return prev;\n"
            "}\n"
        ),
    },
    {
        'title': 'Binary Search',
        'problem_description': 'Find the index of a value in a sorted slice.',
        'language': 'go',
        'tags': ['search', 'arrays'],
        'code': (
            "func search(a []int, x int) int {\n"
            "    lo, hi := 0, len(a)-1\n"
            "    for lo <= hi {\n"
            "        m := (lo + hi) / 2\n"
            "        if a[m] == x { return m } else if a[m] < x { lo = m + 1 } else { hi = m - 1 }\n"
            "    }\n"
            "    return -1\n"
            "}\n"
        ),
    },
    {
        'title': 'FizzBuzz',
        'problem_description': 'Print 1..n replacing multiples of 3 and 5.',
        'language': 'rust',
        'tags': ['basics'],
        'code': (
            "fn main() {\n"
            "    for i in 1..=15 {\n"
            "        match (i % 3, i % 5) { (0, 0) => println!(\"FizzBuzz\"), (0, _) => println!(\"Fizz\"),\n"
            "            (_, 0) => println!(\"Buzz\"), _ => println!(\"{}\", i) }\n"
            "    }\n"
            "}\n"
        ),
    },
]

COMMENT_TEXTS = [
    "Great solution, very readable.",
    "What's the time complexity here?",
    "Thanks for sharing!",
    "This could use an early return.",
    "Exactly what I was looking for.",
]


class Command(BaseCommand):
    help = 'Seed the database with sample snippets, votes, comments and forks'

    def add_arguments(self, parser):
        parser.add_argument(
            '--users',
            type=int,
            default=6,
            help='Number of users to create'
        )
        parser.add_argument(
            '--snippets',
            type=int,
            default=10,
            help='Number of snippets to create'
        )
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Clear existing data before seeding'
        )

    def handle(self, *args, **options):
        if options['clear']:
            self.stdout.write('Clearing existing data...')
            with transaction.atomic():
                PointEvent.objects.all().delete()
                CodeFork.objects.all().delete()
                SnippetComment.objects.all().delete()
                Snippet.objects.all().delete()
                User.objects.filter(is_superuser=False).delete()

        self.stdout.write('Creating users...')
        admin = self._create_admin()
        users = self._create_users(options['users'])

        self.stdout.write('Creating snippets...')
        snippets = self._create_snippets(users, admin, options['snippets'])

        self.stdout.write('Creating votes and comments...')
        comment_count = self._create_activity(users, snippets)

        self.stdout.write('Creating forks...')
        fork_count = self._create_forks(users, snippets)

        self.stdout.write(self.style.SUCCESS(
            f'Successfully created:\n'
            f'  - {len(users)} users (+ admin "{admin.username}")\n'
            f'  - {len(snippets)} snippets\n'
            f'  - {comment_count} comments\n'
            f'  - {fork_count} forks'
        ))

    def _create_admin(self):
        admin = User.objects.filter(username='admin').first()
        if admin is None:
            admin = User.objects.create_superuser('admin', 'admin@example.com', 'admin123')
        return admin

    def _create_users(self, count):
        users = []
        for i in range(count):
            username = f'coder{i+1}'
            user = User.objects.filter(username=username).first()
            if user is None:
                user = User.objects.create_user(
                    username=username,
                    email=f'{username}@example.com',
                    password='password123'
                )
            users.append(user)
        return users

    def _create_snippets(self, users, admin, count):
        snippets = []
        for i in range(count):
            sample = SAMPLE_SNIPPETS[i % len(SAMPLE_SNIPPETS)]
            snippet = lifecycle.submit(
                author=random.choice(users),
                title=f"{sample['title']} #{i+1}",
                problem_description=sample['problem_description'],
                language=sample['language'],
                code=sample['code'],
                tags=sample['tags'],
            )
            # Leave roughly one in five in the moderation queue
            if random.random() < 0.8:
                snippet = lifecycle.approve(snippet.id, admin)
            snippets.append(snippet)
        return snippets

    def _create_activity(self, users, snippets):
        comments = 0
        for snippet in snippets:
            for voter in random.sample(users, k=len(users) // 2):
                services.toggle_upvote(voter, snippet.id)
            if random.random() < 0.3:
                services.toggle_favorite(random.choice(users), snippet.id)
            for _ in range(random.randint(0, 3)):
                lifecycle.add_comment(snippet.id, random.choice(users), random.choice(COMMENT_TEXTS))
                comments += 1
        return comments

    def _create_forks(self, users, snippets):
        created = 0
        for snippet in snippets:
            if random.random() >= 0.4:
                continue
            forker = random.choice([u for u in users if u.id != snippet.author_id] or users)
            code_fork = forks.fork(
                snippet_id=snippet.id,
                forker=forker,
                modified_code=snippet.code + '\n// refactored\n',
                changes='Tidied up naming and added a comment',
            )
            for voter in random.sample(users, k=min(2, len(users))):
                services.toggle_fork_vote(voter, code_fork.id)
            created += 1
        return created

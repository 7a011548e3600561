import argparse

import pandas as pd

import repository
from app import create_app
from renewal import PLANS, compute_next_payment_date, utcnow

EXPORT_COLUMNS = ['id', 'name', 'phone', 'email', 'plan', 'nextPayment', 'status',
                  'checkinsThisMonth', 'avatarUrl', 'notes', 'createdAt', 'daysRemaining', 'overdue']


def members_frame(members) -> pd.DataFrame:
    rows = []
    now = utcnow()
    for m in members:
        d = m.to_dict(now)
        renewal = d.pop('renewal')
        d['daysRemaining'] = renewal['days']
        d['overdue'] = renewal['overdue']
        rows.append(d)
    return pd.DataFrame(rows, columns=EXPORT_COLUMNS)


def add_member(name, phone, plan, email=None):
    fields = repository.normalize_fields({'name': name, 'phone': phone, 'plan': plan, 'email': email}, creating=True)
    m = repository.create_member(fields, compute_next_payment_date(fields['plan'], utcnow()))
    print('Added', m.name, 'id=', m.id, 'next payment', m.to_dict()['nextPayment'])
    return m


def list_members(search=None, status=None):
    df = members_frame(repository.list_members(search=search, status=status))
    if df.empty:
        print('No members')
    else:
        print(df[['id', 'name', 'phone', 'plan', 'status', 'nextPayment', 'daysRemaining']].to_string(index=False))
    return df


def export_members(out, search=None, status=None):
    df = members_frame(repository.list_members(search=search, status=status))
    if out.lower().endswith(('.xlsx', '.xls')):
        df.to_excel(out, index=False)
    else:
        df.to_csv(out, index=False)
    print('Exported', len(df.index), 'members to', out)
    return out


def build_parser():
    parser = argparse.ArgumentParser(description='Gym member administration')
    sub = parser.add_subparsers(dest='cmd')
    a = sub.add_parser('add'); a.add_argument('--name', required=True); a.add_argument('--phone', required=True)
    a.add_argument('--plan', default=PLANS[0]); a.add_argument('--email')
    ls = sub.add_parser('list'); ls.add_argument('--search'); ls.add_argument('--status')
    e = sub.add_parser('export'); e.add_argument('--out', default='members.csv')
    e.add_argument('--search'); e.add_argument('--status')
    return parser


def main(argv=None, app=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.cmd:
        parser.print_help()
        return 1
    app = app or create_app()
    with app.app_context():
        try:
            if args.cmd == 'add':
                add_member(args.name, args.phone, args.plan, args.email)
            elif args.cmd == 'list':
                list_members(args.search, args.status)
            elif args.cmd == 'export':
                export_members(args.out, args.search, args.status)
        except repository.ValidationError as e:
            print('Invalid input:', e)
            return 2
        except repository.MemberConflict as e:
            print(e)
            return 3
    return 0


if __name__ == '__main__':
    raise SystemExit(main())

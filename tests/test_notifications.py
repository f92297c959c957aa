from couponsync.utils.notifications import NotificationKind, NotificationLog


def test_capacity_evicts_oldest_first(engine):
    log = NotificationLog(engine, capacity=3)
    for index in range(5):
        log.add(NotificationKind.COUPON_CREATED, {"id": index})
    items = log.all()
    assert [item.payload["id"] for item in items] == [2, 3, 4]


def test_identical_consecutive_entries_are_collapsed(engine):
    log = NotificationLog(engine)
    assert log.add("error", {"message": "boom"}) is True
    assert log.add("error", {"message": "boom"}) is False
    assert log.add("brand_created", {"brand": "Glow Lab"}) is True
    assert log.add("error", {"message": "boom"}) is True
    assert len(log.all()) == 3


def test_mark_read_and_clear(engine):
    log = NotificationLog(engine)
    log.add(NotificationKind.SYNC_SUMMARY, {"processed": 1})
    log.add(NotificationKind.BRAND_CREATED, {"brand": "Alpha"})
    assert len(log.unread()) == 2
    assert log.mark_all_read() == 2
    assert log.unread() == []
    log.clear()
    assert log.all() == []
